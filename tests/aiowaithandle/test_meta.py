#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import pickle

import pytest

import aiowaithandle


class _TestMarker:
    def test_base(self, /):
        assert type(self.value)() is self.value  # singleton
        assert repr(self.value) == self.name

    def test_attrs(self, /):
        with pytest.raises(AttributeError):
            self.value.nonexistent_attribute  # noqa: B018
        with pytest.raises(AttributeError):
            self.value.nonexistent_attribute = 42

    def test_pickling(self, /):
        assert pickle.loads(pickle.dumps(self.value)) is self.value

    def test_inheritance(self, /):
        with pytest.raises(TypeError):

            class MarkerType(type(self.value)):
                pass


class TestMissing(_TestMarker):
    name = "aiowaithandle.meta.MISSING"
    value = aiowaithandle.meta.MISSING

    def test_falsy(self, /):
        assert not self.value


class TestWaitTimeout(_TestMarker):
    name = "aiowaithandle.WAIT_TIMEOUT"
    value = aiowaithandle.WAIT_TIMEOUT


def test_exports():
    assert aiowaithandle.WaitHandleAwaiter.__module__ == "aiowaithandle"
    assert aiowaithandle.wait_any.__module__ == "aiowaithandle"
    assert "wait_all" in aiowaithandle.__all__
    assert "WAIT_TIMEOUT" in aiowaithandle.__all__
    assert aiowaithandle.__all__.index("WAIT_TIMEOUT") == 0
