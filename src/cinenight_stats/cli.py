import argparse
import json
import logging
import sys
from dataclasses import asdict

from tqdm import tqdm

from .config import AFFINITY_SIZE, HISTORY_PATH, LEADERBOARD_SIZE
from .group_stats import (
    achievements,
    genre_counts,
    group_vs_ref,
    runtime_totals,
    similarity_matrix,
    spread_tone,
    top_and_flop,
    total_votes,
)
from .history_io import HistoryLoadError, export_history, load_history
from .math_utils import sample_stdev
from .normalize import normalize_history
from .ranking import build_dense_ranking, build_leaderboards, given_summaries, received_summaries
from .user_stats import affinity_with_others, build_user_report, pick_win_rate

logger = logging.getLogger(__name__)


def _fmt(value, digits: int = 2) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.{digits}f}"
    return str(value)


def _validate_username(username: str) -> str:
    """Trim a user name given on the command line; empty names are rejected."""
    cleaned = username.strip()
    if not cleaned:
        raise ValueError("Username must not be empty")
    return cleaned


def _load(args: argparse.Namespace):
    return normalize_history(load_history(args.history))


def cmd_overview(args: argparse.Namespace) -> None:
    """Show group-wide statistics."""
    views = _load(args)
    minutes, known = runtime_totals(views)
    genres = genre_counts(views)

    logger.info("\nGroup overview:")
    logger.info(f"  Films watched: {len(views)}")
    logger.info(f"  Minutes: {_fmt(minutes, 0)} ({known} films with runtime)" if known else "  Minutes: -")
    logger.info(f"  Distinct genres: {len(genres)}")
    logger.info(f"  Total votes: {total_votes(views)}")

    all_scores = [score for v in views for score in v.ratings.values()]
    spread = sample_stdev(all_scores)
    if spread is not None:
        logger.info(f"  Vote spread: {spread:.2f} ({spread_tone(spread)})")

    boards = build_leaderboards(given_summaries(views), n=args.limit)
    for title, rows in (
        ("Most votes given", boards.most_active),
        ("Harshest", boards.harshest),
        ("Kindest", boards.kindest),
    ):
        logger.info(f"\n{title}:")
        for row in rows:
            logger.info(f"  {row.user}: avg {row.average:.2f} ({row.count} votes)")

    pickers = received_summaries(views)
    if pickers:
        logger.info("\nAverage score received by pickers:")
        for row in tqdm(pickers, desc="Pickers", disable=not args.verbose):
            win_rate = pick_win_rate(views, row.user)
            logger.info(f"  {row.user}: avg {row.average:.2f} over {row.count} picks, win rate {_fmt(win_rate)}%")

    best, worst = top_and_flop(views, n=args.limit)
    logger.info("\nTop movies:")
    for m in best:
        logger.info(f"  {m.title}: avg {m.avg:.2f} ({m.votes} votes)")
    logger.info("\nFlop movies:")
    for m in worst:
        logger.info(f"  {m.title}: avg {m.avg:.2f} ({m.votes} votes)")

    closest, farthest = group_vs_ref(views, n=args.limit)
    if closest:
        logger.info("\nClosest to the reference score:")
        for r in closest:
            logger.info(f"  {r.title}: group {r.avg:.2f} vs {r.ref:.2f}")
        logger.info("\nFarthest from the reference score:")
        for r in farthest:
            logger.info(f"  {r.title}: group {r.avg:.2f} vs {r.ref:.2f}")

    feats = achievements(views)
    logger.info(f"\nAchievements ({feats.count}):")
    logger.info(f"  Best streak: {feats.best_streak} weeks >= {feats.streak_threshold}")
    if feats.record_night:
        logger.info(f"  Record night: {feats.record_night.title} ({feats.record_night.avg:.2f})")
    for milestone in feats.milestones:
        logger.info(f"  {milestone}")


def cmd_user(args: argparse.Namespace) -> None:
    """Show the personal report of one user."""
    username = _validate_username(args.username)
    views = _load(args)
    report = build_user_report(views, username)

    if args.json:
        print(json.dumps(asdict(report), indent=2, default=str))
        return

    if not report.votes_given and not report.votes_received:
        logger.error(f"No votes or picks found for '{username}'")
        return

    logger.info(f"\nStats for {username}")
    logger.info(f"  Votes given: {report.n_given}")
    logger.info(f"  Crowd comparison: you {_fmt(report.crowd.avg_user)} vs crowd {_fmt(report.crowd.avg_crowd)}")
    logger.info(f"  Hit rate: {_fmt(report.hit_rate)}%  Pick win rate: {_fmt(report.pick_win_rate)}%")
    logger.info(f"  Average runtime: {_fmt(report.average_runtime)} min")
    years = report.years
    logger.info(f"  Pick years: avg {_fmt(years['avg'])}, {_fmt(years['min'])}-{_fmt(years['max'])}")
    logger.info(f"  Reference score of picks: {_fmt(report.average_ref_score)} (bias {_fmt(report.bias_vs_ref)})")
    logger.info(f"  Spread of received votes: {_fmt(report.received_spread)}  polarization {_fmt(report.polarization)}")
    logger.info(f"  Correlation with group: {_fmt(report.corr_with_group)}  with reference: {_fmt(report.corr_with_ref)}")
    logger.info(f"  Bias z-score: {_fmt(report.bias_z)}")

    if report.top_picks:
        logger.info("\nTop picks:")
        for pick in report.top_picks:
            logger.info(f"  {pick.title}: {pick.avg:.2f}")

    for title, rows in (
        ("Runtime", report.runtime_buckets),
        ("Countries", report.country_distribution),
        ("Decades", report.decade_distribution),
    ):
        if any(row["count"] for row in rows):
            logger.info(f"\n{title}:")
            for row in rows:
                logger.info(f"  {row['name']}: {row['count']}")

    _log_affinity(report.affinity)


def _log_affinity(affinity) -> None:
    if affinity.most:
        logger.info("\nMost aligned:")
        for row in affinity.most:
            logger.info(f"  {row.user}: {row.corr:+.2f}")
    if affinity.least:
        logger.info("\nLeast aligned:")
        for row in affinity.least:
            logger.info(f"  {row.user}: {row.corr:+.2f}")
    if not affinity.most and not affinity.least:
        logger.info("\nNot enough shared votes to measure affinity.")


def cmd_affinity(args: argparse.Namespace) -> None:
    """Show the most and least aligned raters for a user."""
    username = _validate_username(args.username)
    views = _load(args)
    _log_affinity(affinity_with_others(views, username, n=args.limit))


def cmd_ranking(args: argparse.Namespace) -> None:
    """Show every rated viewing with its rank."""
    views = _load(args)
    ranking = build_dense_ranking(views)
    titles = {v.id: v.movie.title for v in views}

    logger.info(f"\nRanking ({ranking.total} rated viewings):")
    ordered = sorted(ranking.ranks.items(), key=lambda item: item[1])
    shown = ordered[: args.limit] if args.limit else ordered
    for view_id, rank in shown:
        logger.info(f"  #{rank} {titles.get(view_id, view_id)}")


def cmd_matrix(args: argparse.Namespace) -> None:
    """Show the pairwise similarity matrix."""
    matrix = similarity_matrix(_load(args))
    if not matrix.users:
        logger.info("No ratings yet.")
        return
    width = max(len(u) for u in matrix.users)
    logger.info("\n" + " " * (width + 2) + " ".join(f"{u[:5]:>5}" for u in matrix.users))
    for i, user in enumerate(matrix.users):
        cells = " ".join(f"{matrix.corr[i, j]:+.2f}" for j in range(len(matrix.users)))
        logger.info(f"{user:>{width}}  {cells}")


def cmd_export(args: argparse.Namespace) -> None:
    """Write a timestamped copy of the history file."""
    export_history(load_history(args.history), args.directory)


def main():
    parser = argparse.ArgumentParser(description="Movie night statistics")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--history", default=str(HISTORY_PATH),
                        help=f"History JSON file (default: {HISTORY_PATH})")
    subparsers = parser.add_subparsers(dest="command", required=True)

    overview_parser = subparsers.add_parser("overview", help="Show group statistics")
    overview_parser.add_argument("--limit", type=int, default=LEADERBOARD_SIZE,
                                 help="Entries per leaderboard")
    overview_parser.set_defaults(func=cmd_overview)

    user_parser = subparsers.add_parser("user", help="Show a user's personal stats")
    user_parser.add_argument("username", help="User name as it appears in the ratings")
    user_parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    user_parser.set_defaults(func=cmd_user)

    affinity_parser = subparsers.add_parser("affinity", help="Find the most and least aligned raters")
    affinity_parser.add_argument("username", help="User name as it appears in the ratings")
    affinity_parser.add_argument("--limit", type=int, default=AFFINITY_SIZE, help="Users per list")
    affinity_parser.set_defaults(func=cmd_affinity)

    ranking_parser = subparsers.add_parser("ranking", help="Rank viewings by average score")
    ranking_parser.add_argument("--limit", type=int, default=0, help="Only show the first N (0 = all)")
    ranking_parser.set_defaults(func=cmd_ranking)

    matrix_parser = subparsers.add_parser("matrix", help="Show the rater similarity matrix")
    matrix_parser.set_defaults(func=cmd_matrix)

    export_parser = subparsers.add_parser("export", help="Export the history to a timestamped file")
    export_parser.add_argument("directory", help="Output directory")
    export_parser.set_defaults(func=cmd_export)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        args.func(args)
    except (HistoryLoadError, ValueError) as exc:
        logger.error(str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()
