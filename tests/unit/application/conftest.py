"""Fixtures for pipeline tests: repositories, fake source/evaluator, captured console."""

import io

import pytest

from ghaudit.application.report import ReportSink
from fakes import FakeEvaluator, FakeSource, make_repo


@pytest.fixture
def repos():
    return [make_repo(name) for name in ("alpha", "bravo", "charlie")]


@pytest.fixture
def source(repos):
    return FakeSource(repos)


@pytest.fixture
def evaluator():
    return FakeEvaluator()


@pytest.fixture
def console():
    return io.StringIO()


@pytest.fixture
def reporter(console):
    return ReportSink(out=console)
