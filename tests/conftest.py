import os

import pytest


@pytest.fixture
def env_vars():
    """Set environment variables for one test and restore them afterwards."""
    old_env = {}

    def _set(**values):
        for k, v in values.items():
            if k not in old_env:
                old_env[k] = os.environ.get(k)
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = str(v)

    yield _set

    for k, v in old_env.items():
        if v is None:
            os.environ.pop(k, None)
        else:
            os.environ[k] = v
