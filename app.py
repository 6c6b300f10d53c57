#!/usr/bin/env python3
import argparse
import logging
import os
import tempfile
from dataclasses import replace
from pathlib import Path

from pixframe import WorkspaceConfig, create_app
from pixframe.testing import run_self_tests


def main():
    parser = argparse.ArgumentParser(description="Run the PixFrame customer/project record service.")
    parser.add_argument('--selftest', action='store_true', help='run built-in smoke tests against a scratch workspace and exit')
    parser.add_argument('--host', default='127.0.0.1')
    parser.add_argument('--port', default=5000, type=int)
    parser.add_argument('--workspace', help='workspace folder (default: $PIXFRAME_WORKSPACE or ~/Documents/PixFrameWorkspace)')
    parser.add_argument('--log-level', default=os.environ.get('PIXFRAME_LOG_LEVEL', 'INFO'))
    parser.add_argument('--debug', action='store_true', help='enable Flask debug/reloader')
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    if args.selftest:
        with tempfile.TemporaryDirectory(prefix='pixframe-selftest-') as scratch:
            run_self_tests(create_app(WorkspaceConfig(workspace_path=Path(scratch))))
        return

    config = WorkspaceConfig.from_env()
    if args.workspace:
        config = replace(config, workspace_path=Path(args.workspace))

    env_debug = os.environ.get('PIXFRAME_DEBUG', '').lower() in ('1', 'true', 'yes')
    run_kwargs = dict(host=args.host, port=args.port, threaded=True)
    if args.debug or env_debug:
        run_kwargs.update(dict(debug=True, use_reloader=True, use_debugger=True))
    else:
        run_kwargs.update(dict(debug=False, use_reloader=False, use_debugger=False, use_evalex=False))

    create_app(config).run(**run_kwargs)


if __name__ == '__main__':
    main()
