"""Work out the current tour and build the tour control record.

The current tour is the tour of the most recent played show.  Before the
first show of a year is played it is the first upcoming tour; with no
shows at all this year, earlier years are searched.
"""

from phishstats.config import TOUR_HISTORY_YEARS
from phishstats.errors import PhishStatsError
from phishstats.models import FutureTour, TourControl, TourDate


def determine_current_tour(shows, today):
    """(tour_name, latest played Show or None) for a year's shows."""
    played = [s for s in shows if s.date <= today and s.tour_name]
    if played:
        latest = max(played, key=lambda s: s.date)
        return latest.tour_name, latest

    upcoming = sorted((s for s in shows if s.date > today and s.tour_name), key=lambda s: s.date)
    if upcoming:
        return upcoming[0].tour_name, None
    return None, None


def find_latest_tour_from_history(source, start_year, today,
                                  years_back=TOUR_HISTORY_YEARS, verbose=True):
    """Search start_year and earlier for the most recent played show.

    Returns (tour_name, Show, year_shows) or (None, None, []).  A year that
    fails to load is skipped.
    """
    for year in range(start_year, start_year - years_back - 1, -1):
        if verbose:
            print(f"  Searching {year} for completed tours...")
        try:
            shows = source.fetch_shows(year)
        except PhishStatsError as e:
            if verbose:
                print(f"    Failed to fetch {year} shows: {e}")
            continue
        played = [s for s in shows if s.date <= today and s.tour_name]
        if played:
            latest = max(played, key=lambda s: s.date)
            return latest.tour_name, latest, shows
    return None, None, []


def build_tour_dates(shows, tour_name, today, durations_available=None):
    """Chronological TourDates for one tour, numbered from 1.

    durations_available is the set of dates already known to have
    phish.in durations.
    """
    durations_available = durations_available or set()
    tour = sorted((s for s in shows if s.tour_name == tour_name), key=lambda s: s.date)
    return [
        TourDate(
            date=s.date,
            venue=s.venue,
            city=s.city,
            state=s.state,
            played=s.date <= today,
            show_number=i,
            durations_available=s.date in durations_available,
        )
        for i, s in enumerate(tour, start=1)
    ]


def find_future_tours(shows, current_tour_name, today):
    """Other tours whose every show is still in the future, by start date."""
    groups = {}
    for s in shows:
        if s.tour_name and s.tour_name != current_tour_name:
            groups.setdefault(s.tour_name, []).append(s)

    future = []
    for name, tour_shows in groups.items():
        if all(s.date > today for s in tour_shows):
            dates = sorted(s.date for s in tour_shows)
            future.append(FutureTour(name=name, start_date=dates[0], end_date=dates[-1],
                                     shows=len(dates)))
    return sorted(future, key=lambda f: (f.start_date, f.name))


def build_tour_control(shows, tour_name, today, future_shows=None, durations_available=None):
    """TourControl for tour_name from its year's shows.

    future_shows (defaults to shows) is where upcoming tours are looked for,
    which differs from shows when the current tour came from an earlier year.
    """
    tour_dates = build_tour_dates(shows, tour_name, today, durations_available)
    played = [t for t in tour_dates if t.played]
    year = tour_dates[0].date[:4] if tour_dates else today[:4]
    return TourControl(
        tour_name=tour_name,
        year=year,
        tour_dates=tour_dates,
        latest_show=played[-1] if played else None,
        future_tours=find_future_tours(shows if future_shows is None else future_shows,
                                       tour_name, today),
    )
