import os

# Widgets tests run headless.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
