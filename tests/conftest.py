import sys
import os

# project root on sys.path so tests import the flat top-level packages (ingest, storage, correlate, ...)
# and modules (cli, pipeline, settings, errors) without installing
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
