import shutil
from pathlib import Path

import pytest

from rpg_chronicle.storage import Storage

TEST_DATA_DIR = Path("data-tests")


@pytest.fixture
def storage() -> Storage:
    """Wipe and re-init data-tests/ for the test."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    return Storage(TEST_DATA_DIR)
