"""Main entry point for Survey Mapper: command-line export and the HTTP server."""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from aiohttp import web

from domain.errors import ExportError
from domain.models import BoundingBox, GeoPoint
from geo.polygon import AreaReport, DistanceReport
from infrastructure.credentials import load_subscription_key
from infrastructure.http.client import validate_subscription_key
from services.delivery import FileDelivery
from services.export_service import OrchestratorContext, estimate_export
from services.map_job import run_export_job
from settings import ExportSettings, load_settings
from shared.constants import SERVER_DEFAULT_HOST, SERVER_DEFAULT_PORT, MapStyle
from shared.diagnostics import log_memory_usage
from shared.progress import CancelledError, ConsoleSink

logger = logging.getLogger(__name__)


def setup_logging() -> Path:
    """Configure application logging to LOCALAPPDATA (or ~/.local/state).

    Returns:
        Path of the log file.
    """
    local = os.getenv('LOCALAPPDATA') or os.getenv('XDG_STATE_HOME')
    local_base = (Path(local) if local else Path.home() / '.local' / 'state') / 'SurveyMapper'
    log_dir = local_base / 'log'
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / 'survey_mapper.log'

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(str(log_file), encoding='utf-8'),
        ],
    )
    return log_file


def _load_geojson(path: str | Path) -> dict:
    data = json.loads(Path(path).read_text(encoding='utf-8'))
    if not isinstance(data, dict):
        msg = f'{path}: expected a GeoJSON object'
        raise ValueError(msg)
    return data


def _points(path: str | Path, coordinates: object) -> list[GeoPoint]:
    try:
        return [GeoPoint(float(lon), float(lat)) for lon, lat, *_ in coordinates]
    except (TypeError, ValueError) as e:
        msg = f'{path}: malformed coordinates ({e})'
        raise ValueError(msg) from e


def read_geojson_ring(path: str | Path) -> list[GeoPoint]:
    """Внешнее кольцо первого полигона из GeoJSON (Feature, FeatureCollection или Polygon)."""
    data = _load_geojson(path)
    if data.get('type') == 'FeatureCollection':
        features = data.get('features')
        if not isinstance(features, list) or not features:
            msg = f'{path}: FeatureCollection is empty'
            raise ValueError(msg)
        data = features[0]
    if isinstance(data, dict) and data.get('type') == 'Feature':
        data = data.get('geometry')
    if not isinstance(data, dict) or data.get('type') != 'Polygon':
        kind = data.get('type') if isinstance(data, dict) else type(data).__name__
        msg = f'{path}: expected a Polygon geometry, got {kind!r}'
        raise ValueError(msg)
    rings = data.get('coordinates')
    if not isinstance(rings, list) or not rings:
        msg = f'{path}: Polygon has no coordinates'
        raise ValueError(msg)
    return _points(path, rings[0])


def read_geojson_path(path: str | Path) -> list[GeoPoint]:
    """Точки LineString (или кольца Polygon) из GeoJSON."""
    data = _load_geojson(path)
    if data.get('type') == 'Feature' and isinstance(data.get('geometry'), dict):
        data = data['geometry']
    if data.get('type') == 'LineString':
        return _points(path, data.get('coordinates'))
    return read_geojson_ring(path)


def context_from_args(args: argparse.Namespace, settings: ExportSettings) -> OrchestratorContext:
    style = MapStyle(args.style) if args.style else settings.style
    if args.bbox:
        north, south, east, west = args.bbox
        bbox = BoundingBox(north=north, south=south, east=east, west=west)
        return OrchestratorContext.from_bounds(bbox, style)
    if args.polygon:
        return OrchestratorContext(
            ring=read_geojson_ring(args.polygon), style=style, drawing_mode='polygon'
        )
    return OrchestratorContext(style=style)


def _add_shape_args(p: argparse.ArgumentParser) -> None:
    shape = p.add_mutually_exclusive_group()
    shape.add_argument(
        '--bbox',
        nargs=4,
        type=float,
        metavar=('NORTH', 'SOUTH', 'EAST', 'WEST'),
        help='Прямоугольник в градусах',
    )
    shape.add_argument('--polygon', help='GeoJSON-файл с полигоном')
    p.add_argument(
        '--style',
        choices=[s.value for s in MapStyle],
        default=None,
        help='Стиль карты (по умолчанию из профиля)',
    )
    p.add_argument('--profile', default=None, help='Путь к TOML-профилю настроек')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Survey Mapper - выгрузка карт Azure Maps в PNG'
    )
    sub = parser.add_subparsers(dest='command', required=True)

    p_export = sub.add_parser('export', help='Выгрузить область в PNG')
    _add_shape_args(p_export)
    p_export.add_argument('--zoom', type=int, default=None, help='Явный уровень zoom')
    p_export.add_argument('--output-dir', default=None, help='Каталог для PNG')

    p_estimate = sub.add_parser('estimate', help='Оценить размер выгрузки')
    _add_shape_args(p_estimate)

    p_area = sub.add_parser('area', help='Площадь полигона или длина линии')
    p_area.add_argument('--polygon', help='GeoJSON-файл с полигоном')
    p_area.add_argument('--path', help='GeoJSON-файл с линией')

    p_serve = sub.add_parser('serve', help='Запустить HTTP-сервер')
    p_serve.add_argument('--host', default=SERVER_DEFAULT_HOST)
    p_serve.add_argument('--port', type=int, default=SERVER_DEFAULT_PORT)
    p_serve.add_argument('--profile', default=None, help='Путь к TOML-профилю настроек')
    return parser


def cmd_export(args: argparse.Namespace) -> int:
    settings = load_settings(args.profile)
    context = context_from_args(args, settings)
    api_key = load_subscription_key()
    asyncio.run(validate_subscription_key(api_key))
    delivery = FileDelivery(args.output_dir or settings.output_dir)
    result = run_export_job(
        context,
        api_key=api_key,
        settings=settings,
        delivery=delivery,
        sink=ConsoleSink(),
        zoom=args.zoom,
    )
    log_memory_usage('after export')
    print(f'{result.delivery.path} ({result.width}x{result.height}px, zoom {result.zoom})')
    if result.failed_tiles:
        print(f'{result.failed_tiles} of {result.tile_count} tiles missing')
    return 0


def cmd_estimate(args: argparse.Namespace) -> int:
    settings = load_settings(args.profile)
    context = context_from_args(args, settings)
    est = estimate_export(context, settings.max_tiles)
    print(f'Zoom: {est.zoom}')
    print(f'Size: {est.width_px}x{est.height_px}px')
    budget = 'within limit' if est.within_budget else 'over limit'
    print(f'Tiles: {est.tile_count} ({budget} of {settings.max_tiles})')
    for line in est.area.lines():
        print(line)
    return 0


def cmd_area(args: argparse.Namespace) -> int:
    if args.path:
        report = DistanceReport.of_path(read_geojson_path(args.path))
    elif args.polygon:
        report = AreaReport.of_ring(read_geojson_ring(args.polygon))
    else:
        print('Specify --polygon or --path', file=sys.stderr)
        return 2
    for line in report.lines():
        print(line)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from api.server import create_app

    settings = load_settings(args.profile)
    logger.info('Serving on http://%s:%d', args.host, args.port)
    web.run_app(create_app(settings), host=args.host, port=args.port)
    return 0


COMMANDS = {
    'export': cmd_export,
    'estimate': cmd_estimate,
    'area': cmd_area,
    'serve': cmd_serve,
}


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging()
    logger.info('Survey Mapper: %s', args.command)
    try:
        return COMMANDS[args.command](args)
    except CancelledError:
        logger.warning('Export cancelled')
        return 130
    except (ExportError, ValueError, OSError) as e:
        logger.error('%s', e)
        print(f'Error: {e}', file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
