"""AWS Lambda handler and command line entry point for the event crawler."""
import argparse
import json
import logging
import os
import sys
import time
from typing import Any, Dict, List, Optional

from processor.crawl_orchestrator import CrawlOrchestrator
from processor.models import CrawlRun, CrawlSettings
from storage.event_store import EventStore


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def load_settings(environ: Optional[Dict[str, str]] = None) -> CrawlSettings:
    """
    Build crawl settings from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        CrawlSettings with defaults for unset variables
    """
    env = os.environ if environ is None else environ
    defaults = CrawlSettings()
    return CrawlSettings(
        table_name=env.get('TABLE_NAME', defaults.table_name),
        log_level=env.get('LOG_LEVEL', defaults.log_level),
        site_url=env.get('SITE_URL', defaults.site_url),
        images_dir=env.get('IMAGES_DIR', defaults.images_dir),
        images_url_prefix=env.get('IMAGES_URL_PREFIX', defaults.images_url_prefix),
        debug_dir=env.get('DEBUG_DIR') or None,
        first_season_year=int(env.get('FIRST_SEASON_YEAR', defaults.first_season_year)),
        list_timeout=float(env.get('LIST_TIMEOUT_SECONDS', defaults.list_timeout)),
        detail_timeout=float(env.get('DETAIL_TIMEOUT_SECONDS', defaults.detail_timeout)),
        image_timeout=float(env.get('IMAGE_TIMEOUT_SECONDS', defaults.image_timeout)),
        request_delay=float(env.get('REQUEST_DELAY_SECONDS', defaults.request_delay)),
        page_delay=float(env.get('PAGE_DELAY_SECONDS', defaults.page_delay)),
        user_agent=env.get('USER_AGENT', defaults.user_agent),
    )


def format_report(run: CrawlRun) -> str:
    """Human readable summary of a crawl."""
    lines = [
        '',
        '=' * 44,
        '  Crawl summary',
        '=' * 44,
        f"  Events found:    {run.found}",
    ]
    for feed, count in run.feeds.items():
        lines.append(f"    {feed:<15}{count}")
    lines += [
        f"  Created:         {run.created}",
        f"  Updated:         {run.updated}",
        f"  Skipped:         {run.skipped}",
        f"  Errors:          {run.errors}",
    ]
    for message in run.error_messages:
        lines.append(f"    - {message}")
    lines.append('')
    return '\n'.join(lines)


def run_crawl(settings: CrawlSettings) -> CrawlRun:
    store = EventStore(table_name=settings.table_name)
    orchestrator = CrawlOrchestrator(settings=settings, store=store)
    return orchestrator.run()


def get_import_status(settings: CrawlSettings) -> Dict[str, Any]:
    """Count of imported events and the most recently updated one."""
    store = EventStore(table_name=settings.table_name)
    try:
        return {
            'total_imported': store.count_imported_events(),
            'last_imported': store.get_last_imported(),
        }
    finally:
        store.close()


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler for the event crawler.

    Args:
        event: Invocation payload; {"action": "status"} reports import
            status instead of crawling
        context: Lambda context object

    Returns:
        Response dict with statusCode and crawl statistics
    """
    settings = load_settings()

    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    action = (event or {}).get('action', 'crawl')
    logger.info(
        f"Lambda execution started ({action})",
        extra={'table_name': settings.table_name, 'site_url': settings.site_url}
    )

    if action == 'status':
        try:
            status = get_import_status(settings)
        except Exception as e:
            logger.error(f"Failed to read import status: {e}", exc_info=True)
            return {
                'statusCode': 500,
                'body': json.dumps({
                    'message': 'Failed to read import status',
                    'error': str(e),
                    'error_type': type(e).__name__
                })
            }
        return {
            'statusCode': 200,
            'body': json.dumps({'message': 'Import status', 'stats': status})
        }

    try:
        logger.info("Crawling events from the official site")
        run = run_crawl(settings)
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Crawl failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }

    duration = time.time() - start_time
    logger.info(
        f"Lambda execution completed successfully",
        extra={'duration_seconds': round(duration, 2), 'stats': run.to_dict()}
    )

    message = 'Crawl completed successfully' if run.found else 'No events found on the site'
    stats = run.to_dict()
    stats['duration_seconds'] = round(duration, 2)
    return {
        'statusCode': 200,
        'body': json.dumps({
            'message': message,
            'stats': stats,
            'errors': run.error_messages
        })
    }


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog='crawl-events',
        description='Import events from the venue website into the event table'
    )
    p.add_argument('--table-name', help='DynamoDB table (default: $TABLE_NAME)')
    p.add_argument('--log-level', help='Logging level (default: $LOG_LEVEL or INFO)')
    p.add_argument('--debug-dir', help='Save empty first feed pages here')
    p.add_argument('--status', action='store_true', help='Show import status and exit')
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = load_settings()
    if args.table_name:
        settings.table_name = args.table_name
    if args.log_level:
        settings.log_level = args.log_level
    if args.debug_dir:
        settings.debug_dir = args.debug_dir

    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    try:
        if args.status:
            status = get_import_status(settings)
            print(f"Imported events: {status['total_imported']}")
            last = status['last_imported']
            if last:
                print(f"Last imported:   {last['name']} ({last['updated_at']})")
            return 0

        run = run_crawl(settings)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"Crawl failed: {e}", file=sys.stderr)
        return 1

    print(format_report(run))
    return 0


if __name__ == '__main__':
    sys.exit(main())
