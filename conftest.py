import os
import sys
from pathlib import Path

# Make the src/ layout importable when running pytest from a checkout
SRC = Path(__file__).parent / 'src'
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def pytest_collection_modifyitems(config, items):
    """Deselect tests that need network access unless ROOFSCAN_ONLINE_TESTS is set.

    Tests opt in with the ``online`` marker. Everything else is left
    untouched.
    """
    if os.environ.get('ROOFSCAN_ONLINE_TESTS'):
        return

    removed = []
    kept = []
    for item in items:
        if item.get_closest_marker('online') is not None:
            removed.append(item)
        else:
            kept.append(item)

    if removed:
        config.hook.pytest_deselected(items=removed)
        items[:] = kept
        tr = config.pluginmanager.get_plugin('terminalreporter')
        if tr:
            tr.write_sep('-', f'Deselected {len(removed)} online tests (set ROOFSCAN_ONLINE_TESTS=1 to run)')


def pytest_configure(config):
    config.addinivalue_line('markers', 'online: test talks to the real imagery or vision services')
