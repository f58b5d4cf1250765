"""Root conftest — shared pytest markers.

Markers
-------
unit        fast, no I/O, pure logic
v8          needs the embedded V8 runtime (mini-racer); those modules
            call ``pytest.importorskip("py_mini_racer")``
slow        expected to take > 5 seconds
"""

from __future__ import annotations


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast, no I/O tests")
    config.addinivalue_line("markers", "v8: requires the mini-racer V8 runtime")
    config.addinivalue_line("markers", "slow: test is expected to take > 5 s")
