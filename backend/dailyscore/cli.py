import click
from flask import current_app
from flask.cli import AppGroup

from dailyscore.errors import ScoreServiceError
from dailyscore.identity import normalize
from dailyscore.services.scores import get_clock, get_coordinator, get_leaderboard
from dailyscore.services.scores.accounts import load_user
from dailyscore.services.scores.run_stats import RunStatistics
from dailyscore.services.scores.store import DocumentStore

leaderboard_cli = AppGroup('leaderboard', help='Print the leaderboards.')
stats_cli = AppGroup('stats', help='Local run statistics for this device.')

DAY = click.DateTime(formats=['%Y-%m-%d'])


def _day(value):
    return value.date().isoformat() if value is not None else get_clock().today()


def _print_entries(entries):
    if not entries:
        click.echo('(no scores yet)')
        return
    for rank, entry in enumerate(entries, start=1):
        click.echo(f"{rank:>3}. {entry.name:<24} {entry.score}")


@leaderboard_cli.command('today')
@click.option('--date', type=DAY, default=None, help='YYYY-MM-DD, defaults to today.')
@click.option('--exclude-pending', is_flag=True, help='Hide players who have not finished.')
def leaderboard_today(date, exclude_pending):
    entries = get_leaderboard().today(date=_day(date), include_pending=False if exclude_pending else None)
    _print_entries(entries)


@leaderboard_cli.command('all-time')
def leaderboard_all_time():
    _print_entries(get_leaderboard().all_time())


def _run_stats():
    return RunStatistics(current_app.config['RUN_STATS_PATH'])


@stats_cli.command('record')
@click.argument('guesses', type=int)
@click.option('--date', type=DAY, default=None, help='YYYY-MM-DD, defaults to today.')
def stats_record(guesses, date):
    """Store a won game with GUESSES guesses on this device."""
    day = _day(date)
    try:
        stored = _run_stats().record_win(guesses, day)
    except ScoreServiceError as exc:
        raise click.ClickException(exc.message)
    click.echo(f"Recorded {guesses} guesses for {day}." if stored else f"Already won on {day}.")


@stats_cli.command('show')
def stats_show():
    for label, value in _run_stats().summary(get_clock().today()).items():
        click.echo(f"{label:<14} {value}")


@stats_cli.command('sync')
@click.argument('email')
@click.option('--name', default=None, help='Display name for the leaderboard. Defaults to the registered name.')
def stats_sync(email, name):
    """Submit today's local result for EMAIL to the leaderboard."""
    stats = _run_stats()
    try:
        if name is None:
            record = load_user(DocumentStore(), normalize(email))
            name = record.display_name if record is not None else None
        event = stats.take_completion(email, name, get_clock().today())
    except ScoreServiceError as exc:
        raise click.ClickException(exc.message)
    if event is None:
        click.echo('Nothing to sync.')
        return
    try:
        result = get_coordinator().record_completion(event)
    except ScoreServiceError as exc:
        # Hand the result back so the next sync can submit it
        stats.stats['lastReported'] = None
        stats.save()
        current_app.logger.warning(f"[sync-failed] identity={event.identity} date={event.date} error={exc.message}")
        raise click.ClickException(f"Sync failed ({exc.message}); local statistics are unchanged.")
    if result.accepted:
        click.echo(f"Recorded {result.score} guesses for {result.identity} on {result.date}.")
    else:
        click.echo(f"{result.identity} already has {result.score} guesses on {result.date}.")
