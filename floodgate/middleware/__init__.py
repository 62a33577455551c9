# -*- coding: utf-8 -*-
"""Location: ./floodgate/middleware/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

ASGI middleware exposing floodgate to Starlette and FastAPI applications.
"""
