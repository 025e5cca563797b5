"""
Tests for vendor error classification.
"""

import pytest

from wecomly.integrations.base import ConfigError, IntegrationError
from wecomly.integrations.wecom.errors import (
    ErrorKind,
    VendorError,
    classify_code,
    describe_code,
    is_retryable,
)


class TestClassification:
    @pytest.mark.parametrize(
        "code,kind",
        [
            (42001, ErrorKind.AUTH_EXPIRED),
            (40014, ErrorKind.AUTH_INVALID),
            (45009, ErrorKind.RATE_LIMITED),
            (45033, ErrorKind.QUOTA_EXCEEDED),
            (50001, ErrorKind.NOT_AUTHORIZED),
            (60111, ErrorKind.TARGET_NOT_FOUND),
            (60123, ErrorKind.TARGET_NOT_FOUND),
            (40001, ErrorKind.FATAL),
            (99999, ErrorKind.FATAL),
        ],
    )
    def test_classify_code(self, code, kind):
        assert classify_code(code) == kind

    def test_retryable_kinds(self):
        assert is_retryable(ErrorKind.AUTH_EXPIRED)
        assert is_retryable(ErrorKind.RATE_LIMITED)
        assert is_retryable(ErrorKind.TRANSIENT)
        assert not is_retryable(ErrorKind.TARGET_NOT_FOUND)
        assert not is_retryable(ErrorKind.FATAL)
        assert not is_retryable(ErrorKind.CONFIG)


class TestDescriptions:
    def test_known_codes(self):
        assert describe_code(42001) == "access_token已过期"
        assert describe_code(60111) == "UserID不存在"
        assert describe_code(60129) == "部门层级超过限制"

    def test_unknown_code(self):
        assert describe_code(12345) == "未知错误"


class TestVendorError:
    def test_attributes(self):
        error = VendorError(45009, "api freq out of limit")

        assert isinstance(error, IntegrationError)
        assert error.code == 45009
        assert error.kind == ErrorKind.RATE_LIMITED
        assert error.retryable
        assert error.description == "接口调用超过频率限制"
        assert "45009" in str(error)

    @pytest.mark.parametrize("code,recoverable", [(42001, True), (40014, True), (45033, True), (45009, False), (60111, False)])
    def test_is_recoverable(self, code, recoverable):
        assert VendorError(code, "x").is_recoverable() is recoverable

    def test_from_response(self):
        error = VendorError.from_response({"errcode": 60123, "errmsg": "invalid party id"})
        assert error.code == 60123
        assert error.errmsg == "invalid party id"
        assert not error.retryable

    def test_config_error_never_retryable(self):
        assert not ConfigError("missing corpId").retryable
