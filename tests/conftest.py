import sys
import os

import pytest

# Add backend/ to path so tests can import backend modules directly
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

# Add scripts/ to path so tests can import script modules directly
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))


HISTORY_CSV = """course_code,course_class,Rd0_TF,Rd0_rate,Rd1_TF,Rd1_rate,Rd2_TF,Rd2_rate,Rd3_TF,Rd3_rate
ACC1701,LV1,true,0.85,true,0.92,false,1.35,false,inf
ACC1701,LV2,true,0.60,true,0.75,true,0.88,,
ACC2707,SA1,,,false,2.10,false,inf,,
ACC2709,SA2,,,false,1.75,false,2.40,,
ACC3702,SA1,,,true,0.50,,,,
"""


@pytest.fixture
def history_csv(tmp_path):
    """Small well-formed history file on disk."""
    path = tmp_path / "history.csv"
    path.write_text(HISTORY_CSV, encoding="utf-8")
    return path
