"""
Test configuration for Linger tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import LingerGrammar
from interpreter import run


@pytest.fixture
def grammar():
  """Provide a fresh grammar instance for each test"""
  return LingerGrammar()


@pytest.fixture
def examples_dir():
  """Get the examples directory path"""
  return project_root / "examples"


@pytest.fixture
def run_main():
  """Run the statements as the body of main and return the printed lines"""
  def runner(body, procedures=""):
    return run(f"{procedures}\nmain() {{\n{body}\n}}\n")
  return runner
