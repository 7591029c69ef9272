"""
Seed script: inserts a starter roster of health systems, their crawl seeds,
and a few healthcare news sources into the configured DATABASE_URL.

Safe to re-run: accounts are matched by slug, news sources by URL.
"""
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

from healthrecon.database import get_database  # noqa: E402

# (slug, name, website, hq_city, hq_state, [seed urls])
ACCOUNTS = [
    ("bilh", "Beth Israel Lahey Health", "https://bilh.org", "Cambridge", "MA",
     ["https://bilh.org/news", "https://bilh.org/about"]),
    ("mass-general-brigham", "Mass General Brigham", "https://www.massgeneralbrigham.org", "Somerville", "MA",
     ["https://www.massgeneralbrigham.org/en/about/newsroom"]),
    ("atrium-health", "Atrium Health", "https://atriumhealth.org", "Charlotte", "NC",
     ["https://atriumhealth.org/about-us/newsroom"]),
    ("intermountain-health", "Intermountain Health", "https://intermountainhealthcare.org", "Salt Lake City", "UT",
     ["https://news.intermountainhealth.org"]),
    ("providence", "Providence", "https://www.providence.org", "Renton", "WA",
     ["https://www.providence.org/news"]),
]

# (name, url)
NEWS_SOURCES = [
    ("Becker's Hospital Review", "https://www.beckershospitalreview.com"),
    ("Fierce Healthcare", "https://www.fiercehealthcare.com"),
    ("Healthcare Dive", "https://www.healthcaredive.com"),
]


def seed(db):
    """Insert missing accounts, seeds and news sources. Returns the three counts."""
    created_accounts = created_seeds = created_sources = 0

    for slug, name, website, city, state, seeds in ACCOUNTS:
        if db.find_account_by_slug(slug):
            continue
        account = db.add_account(slug, name, website=website, hq_city=city, hq_state=state)
        created_accounts += 1
        for priority, url in enumerate(seeds, start=1):
            db.add_seed(account.id, url, label="newsroom", priority=priority)
            created_seeds += 1

    existing_urls = {s.url for s in db.list_active_news_sources()}
    for name, url in NEWS_SOURCES:
        if url in existing_urls:
            continue
        db.add_news_source(name, url)
        created_sources += 1

    return created_accounts, created_seeds, created_sources


def main():
    accounts, seeds, sources = seed(get_database())
    print(f"Seeded {accounts} accounts, {seeds} seeds, {sources} news sources")


if __name__ == "__main__":
    main()
