"""Tests for warning elevation and advisory emission."""

from __future__ import annotations

import logging
import warnings

import pytest

from load_guard.errors import DeprecationAdvisory
from load_guard.reporting import elevated_reporting, emit_advisories


class TestElevatedReporting:
    def test_shows_ignored_category(self) -> None:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('ignore')
            with elevated_reporting([SyntaxWarning]):
                warnings.warn('invalid escape', SyntaxWarning)
            warnings.warn('after', SyntaxWarning)

        assert [str(w.message) for w in caught] == ['invalid escape']

    def test_other_categories_untouched(self) -> None:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('ignore')
            with elevated_reporting([SyntaxWarning]):
                warnings.warn('hidden', UserWarning)

        assert caught == []

    def test_filters_restored_on_error(self) -> None:
        before = list(warnings.filters)
        with pytest.raises(RuntimeError), elevated_reporting([ImportWarning]):
            raise RuntimeError('boom')
        assert warnings.filters == before


class TestEmitAdvisories:
    def test_emits_each_message(self) -> None:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            count = emit_advisories(['first', 'second'])

        assert count == 2
        assert [(w.category, str(w.message)) for w in caught] == [
            (DeprecationAdvisory, 'first'),
            (DeprecationAdvisory, 'second'),
        ]

    def test_nothing_to_emit(self) -> None:
        assert emit_advisories([]) == 0

    def test_logged_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger='load_guard')
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            emit_advisories(['logged'])

        assert '[CHECK] Advisory: logged' in caplog.text

    def test_advisory_is_a_deprecation_warning(self) -> None:
        assert issubclass(DeprecationAdvisory, DeprecationWarning)
