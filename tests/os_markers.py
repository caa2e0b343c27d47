"""Shared pytest markers describing platform sensitivity."""

from __future__ import annotations

import pytest

OS_AGNOSTIC = pytest.mark.os_agnostic
"""Marks tests whose behaviour does not depend on the host operating system."""

__all__ = ["OS_AGNOSTIC"]
