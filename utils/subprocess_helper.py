"""Central subprocess runner.

Metric readers and device actions use run() from here instead of
subprocess.run() directly, so shelling out never blocks the event loop.
"""
import subprocess

# Under eventlet monkey patching, run subprocesses in real OS threads via
# tpool. Without eventlet (DEBUG_MODE, tests) this is plain subprocess.run.
try:
    import eventlet.patcher
    if eventlet.patcher.is_monkey_patched('os'):
        from eventlet.tpool import execute as _tpool

        def run(*args, **kwargs):
            return _tpool(subprocess.run, *args, **kwargs)
    else:
        run = subprocess.run
except ImportError:
    run = subprocess.run
