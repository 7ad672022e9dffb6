"""DSICOLA Core.

Tenant isolation and academic workflow authorization engine for the
DSICOLA multi-institution academic and financial management platform.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
