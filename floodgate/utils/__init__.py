# -*- coding: utf-8 -*-
"""Location: ./floodgate/utils/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Floodgate utilities.
"""
