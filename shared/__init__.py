"""
PEInfo Shared Module
====================

Configuration, logging and console helpers used by the ``peinfo``
package.
"""

from shared.config import PEInfoConfig, get_config

__all__ = ["PEInfoConfig", "get_config"]
