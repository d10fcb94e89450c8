# tests/conftest.py
import os
import sys

# Ensure repository root and the tests folder are on PYTHONPATH for tests
tests_dir = os.path.abspath(os.path.dirname(__file__))
repo_root = os.path.abspath(os.path.join(tests_dir, os.pardir))
for path in (repo_root, tests_dir):
    if path not in sys.path:
        sys.path.insert(0, path)

# Ensure placeholder secrets do not trigger warnings during tests
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")
os.environ.setdefault("PROVIDERS_FILE", "")
os.environ.setdefault("ENABLE_RICH_LOGGING", "false")
