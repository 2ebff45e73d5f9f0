"""Command line entry point: ``roofscan-detect request.json``.

Reads a detection request (JSON), runs the pipeline and writes the result
JSON to stdout or ``--out``.
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from roofscan.obstacles.config import resolve_settings
from roofscan.obstacles.errors import RoofConstraintError
from roofscan.obstacles.models import DetectionRequest
from roofscan.obstacles.pipeline import detect_roof_constraints

log = logging.getLogger(__name__)


def build_parser():
    p = argparse.ArgumentParser(prog='roofscan-detect', description='Detect rooftop obstacles and shadow zones.')
    p.add_argument('request', help='path to a request JSON file, or - for stdin')
    p.add_argument('--out', '-o', default=None, help='write the result JSON here instead of stdout')
    p.add_argument('--api-key', default=None, help='imagery credential (defaults to $GOOGLE_SOLAR_API_KEY)')
    p.add_argument('--min-obstacle-area', type=float, default=None, help='minimum obstacle area (m²)')
    p.add_argument('--min-shadow-area', type=float, default=None, help='minimum shadow-zone area (m²)')
    p.add_argument('--setbacks', action='store_true', help='also emit setback zones around obstacles')
    p.add_argument('--verbose', '-v', action='store_true')
    return p


def _overrides(args):
    overrides = {}
    if args.min_obstacle_area is not None:
        overrides['DSM_DETECTION'] = {'min_area_sq_m': args.min_obstacle_area}
    if args.min_shadow_area is not None:
        overrides['FLUX_DETECTION'] = {'min_area_sq_m': args.min_shadow_area}
    if args.setbacks:
        overrides['SETBACKS'] = {'enabled': True}
    return overrides


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )
    text = sys.stdin.read() if args.request == '-' else Path(args.request).read_text(encoding='utf-8')
    try:
        request = DetectionRequest.from_dict(json.loads(text))
        result = detect_roof_constraints(request, api_key=args.api_key, settings=resolve_settings(_overrides(args)))
    except (RoofConstraintError, ValueError) as e:
        log.error('Detection failed: %s', e)
        print(f'error: {e}', file=sys.stderr)
        return 2

    output = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    if args.out:
        Path(args.out).write_text(output, encoding='utf-8')
    else:
        print(output)
    return 0


if __name__ == '__main__':
    sys.exit(main())
