# Copyright (c) 2025 Stephen Clau
#
# This file is part of IIROSE Room Plugins.
#
# IIROSE Room Plugins is dual-licensed:
#
# 1. GNU Affero General Public License v3.0 (AGPL-3.0)
#    See LICENSE file for full terms
#
# 2. Commercial License
#    For proprietary use without AGPL requirements
#    Contact: licensing@laudiversified.com
#
# SPDX-License-Identifier: AGPL-3.0-only OR Commercial



"""
General-purpose utilities for IIROSE Room Plugins.

Framework-agnostic tools that do not depend on discord.py.
"""

from .rate_limiting import CooldownTracker, default_scheduler

__all__ = [
    # Rate limiting
    "CooldownTracker",
    "default_scheduler",
]
