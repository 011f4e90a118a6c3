from __future__ import annotations

import io
import logging

import pytest

import formpost
from formpost import FormData

from .conftest import BOUNDARY


class TestLogging:
    def test_add_stderr_logger(self) -> None:
        handler = formpost.add_stderr_logger()
        logger = logging.getLogger("formpost")
        try:
            assert handler in logger.handlers
            assert isinstance(handler, logging.StreamHandler)
        finally:
            logger.removeHandler(handler)
            logger.setLevel(logging.NOTSET)

    def test_unknown_length_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        form = FormData(boundary=BOUNDARY)
        with caplog.at_level(logging.DEBUG, logger="formpost"):
            form.append("a", iter([b"x"]))
        assert "body length is now unknown" in caplog.text

    def test_early_close_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        form = FormData(boundary=BOUNDARY, chunk_size=1)
        form.append("a", io.BytesIO(b"abc"), size=3)
        stream = form.stream()
        with caplog.at_level(logging.DEBUG, logger="formpost"):
            stream.read(len(next(form.fields()).header_bytes) + 1)
            stream.close()
        assert "Stream closed while producing field 'a'" in caplog.text
