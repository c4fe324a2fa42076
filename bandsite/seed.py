"""
Hope & Failure Band Site - Default Content

Seeds each table with the band's launch content the first time the site
starts against an empty database.  Tables that already hold rows are left
alone, so admin edits are never overwritten.
"""

import sqlite3
from typing import Any, Dict, List

from loguru import logger

from bandsite.config import ONE_SIZE
from bandsite.database import get_connection
from bandsite.utils import dump_json, is_past_date

DEFAULT_INVENTORY: List[Dict[str, Any]] = [
    {
        "id": "judith-shirt",
        "title": "HOPE & FAILURE\nJUDITH PRINT SHIRT",
        "price": 0.5,
        "sizes": ["XS", "S", "M", "L", "XL", "XXL", "XXXL"],
        "inventory": {
            "XS": 0,
            "S": 5,
            "M": 15,
            "L": 20,
            "XL": 8,
            "XXL": 5,
            "XXXL": 0,
        },
    },
    {
        "id": "judith-tote",
        "title": "HOPE & FAILURE\nJUDITH PRINT TOTE",
        "price": 0.5,
        "sizes": [],
        "inventory": {ONE_SIZE: 10},
    },
]

DEFAULT_EVENTS: List[Dict[str, Any]] = [
    {
        "id": "1",
        "title": "Hope & Failure @ Cascadian Midsummer 2025 (w/ Ragana, Cinder Well, Hulder, Alda, Illudium, IIII, Aerial Ruin, Geist & The Sacred Ensemble, & more)",
        "date": "2025-06-21",
        "time": "4:00PM",
        "venue": "Red Hawk Avalon",
        "location": "Pe Ell, WA",
    },
    {
        "id": "2",
        "title": "Geremiah (Album Release), Cold Stars, Hope & Failure",
        "date": "2025-05-24",
        "time": "7:00PM",
        "venue": "High Water Mark",
        "location": "Portland, OR",
    },
    {
        "id": "3",
        "title": "Hope & Failure (Acoustic), Byssus, Headstone Brigade",
        "date": "2025-04-05",
        "time": "7:00PM",
        "venue": "Azoth",
        "location": "Portland, OR",
    },
    {
        "id": "4",
        "title": "Hope & Failure @ Lúnasa Cascadia 2024 (w/ Xasthur, Aerial Ruin, Luneau, Toby Driver, Faun Fables, Geist & The Sacred Ensemble, Luna Negra, Venetian Veil, Shifting Harbor & more)",
        "date": "2024-07-26",
        "time": "8:00PM",
        "venue": "Dundee Lodge",
        "location": "Gaston, OR",
    },
    {
        "id": "5",
        "title": "Geremiah, Dooley, Hope & Failure",
        "date": "2024-05-16",
        "time": "8:00PM",
        "venue": "Tum Tum Turn",
        "location": "Portland, OR",
    },
    {
        "id": "6",
        "title": "CONVEXITY Vol. 1 - Hope and Failure, Venetian Veil, Dick Fitts, and a New unnamed project featuring Jet Shea, Kora Link, Killean, and Maggie Jane",
        "date": "2024-03-23",
        "time": "8:00PM",
        "venue": "Azoth",
        "location": "Portland, OR",
    },
    {
        "id": "7",
        "title": "Hope & Failure @ Lúnasa Cascadia 2023 (w/ Grails, Luna Negra, Alora Crucible, F-Space, Theif, Kayo Dot, Nasalrod & more)",
        "date": "2023-07-27",
        "time": "7:00PM",
        "venue": "Dundee Lodge",
        "location": "Gaston, OR",
    },
    {
        "id": "8",
        "title": "Hope & Failure, Atminiana, Backseat Plastic",
        "date": "2023-07-20",
        "time": "7:00PM",
        "venue": "High Water Mark",
        "location": "Portland, OR",
    },
    {
        "id": "9",
        "title": "Hope & Failure (Acoustic), Eef Barzelay of Clem Snide",
        "date": "2023-07-16",
        "time": "7:00PM",
        "venue": "Birb House",
        "location": "Vancouver, WA",
    },
    {
        "id": "10",
        "title": "Hope & Failure @ Party Off The Grid 2023 (w/ Body Shame, Imindparade, Library Studies & more)",
        "date": "2023-06-23",
        "time": "11:00PM",
        "venue": "Secret Location",
        "location": "Mt Hood, OR",
    },
    {
        "id": "11",
        "title": "Hope & Failure, Blood Moon, GrImA",
        "date": "2022-07-28",
        "time": "7:00PM",
        "venue": "High Water Mark",
        "location": "Portland, OR",
    },
    {
        "id": "12",
        "title": "Hope & Failure, Violetera, Has // Will",
        "date": "2022-07-16",
        "time": "8:00PM",
        "venue": "No Fun Bar",
        "location": "Portland, OR",
    },
]

DEFAULT_VIDEOS: List[Dict[str, Any]] = [
    {"id": "1", "youtube_id": "-1Z3-77cvVQ", "title": 'HOPE & FAILURE - "BLACK HEART" (MUSIC VIDEO)', "order": 1},
    {"id": "2", "youtube_id": "_30hdyQf-jY", "title": 'HOPE & FAILURE - "HELL AND BACK" (OFFICIAL MUSIC VIDEO)', "order": 2},
    {"id": "3", "youtube_id": "rZVkmhlMXno", "title": 'HOPE & FAILURE - "MIRROR ALTAR" (OFFICIAL MUSIC VIDEO)', "order": 3},
    {"id": "4", "youtube_id": "8JwBO2AP1_E", "title": "HOPE & FAILURE - LIVE PERFORMANCE", "order": 4},
    {"id": "5", "youtube_id": "3yPWrvQQ1PY", "title": "HOPE & FAILURE - STUDIO SESSION", "order": 5},
    {"id": "6", "youtube_id": "Uh21YOZks4I", "title": "HOPE & FAILURE - BEHIND THE SCENES", "order": 6},
]

DEFAULT_BIO: Dict[str, Any] = {
    "main_text": [
        "Hope & Failure is a Portland-based ethereal doom-folk band whose sound navigates between delicate, atmospheric, and heavy/cathartic moments. Their lyrics explore themes of death, rebirth, nature, connection with the unseen, and a desire to exist together beyond the confines of the capitalist hellscape.",
        "Beginning in 2022 as a mid-quarantine daydream and extension of Rhone's side project Mistaken for Ghosts, Hope & Failure grew from an acoustic folk project into a much louder, expansive, and collaborative entity. Current band members include Rhone Lachner (vocals, guitar, flute, cello), Mikey Romay (drums, synth), Max Baker (bass), and Michael Connely (violin).",
        "Prior bands of current members include Strangeweather, Mistaken for Ghosts, Pretenser, and A.M. Error. They draw inspiration from artists such as Portishead, Yob, Dead Can Dance, Antiproduct, Shipping News, Chopin, and Enya.",
    ],
    "band_image": "/static/images/HopeFailure-BandPic.jpg",
    "past_members": ["Thee one and only Sam Forst (Bass)"],
    "photography": [
        {
            "name": "Sarah Nelson",
            "instagram": "sarahnelson.design",
            "url": "https://instagram.com/sarahnelson.design",
        },
        {
            "name": "Tom Asselin",
            "instagram": "shiftingharborgrams",
            "url": "https://instagram.com/shiftingharborgrams",
        },
    ],
}

DEFAULT_LYRICS: List[Dict[str, Any]] = [
    {
        "id": "1",
        "title": "Mirror Altar",
        "lyrics": (
            "Mirror altar - shines bright\none then another\nBreath tight\nHold on\n\n"
            "Old and weathered - clear sight\nBaby's mother\nDon't die\nHold on"
        ),
        "order": 1,
        "is_instrumental": False,
    },
    {
        "id": "2",
        "title": "Dream for Nothing",
        "lyrics": (
            "Daylight fades\nBeneath the leaves and grey\nHands for hiding\nShifting across his face\n\n"
            "Hear them\nCall your name\nThere again\nLong forgotten friends\n\n"
            "All we know\nWritten along sand\nDream for nothing\nUntil we find a place to land\n\n"
            "All we are\nEchoes along glass\nDream for nothing\nThought we had a second chance\n\n"
            "You a setting sun\nYou the setting sun\nYou a setting sun\nYou the setting sun"
        ),
        "order": 2,
        "is_instrumental": False,
    },
    {
        "id": "3",
        "title": "Death is a River",
        "lyrics": "",
        "order": 3,
        "is_instrumental": True,
    },
    {
        "id": "4",
        "title": "Will You Meet Me",
        "lyrics": (
            "As all decays\nIt slips away\n\n"
            "In all the darkness and the suffering\nWe'll be ok\n\n"
            "With ashes in the air as babies cry\nWe'll see new days\n\n"
            "With poison in the water we can swim\nAway\nAway\nAway\n\n"
            "Will you meet me at the river's edge?\nWe'll scream together until we are well\n"
            "In all the darkness and the suffering\nLet's dream together something more than this\n\n"
            "Here I hope\nWe can grow old\nAlong the bend\nRest your head"
        ),
        "order": 4,
        "is_instrumental": False,
    },
    {
        "id": "5",
        "title": "Float",
        "lyrics": (
            "As the wind blows through\nFloating\nInside exploding\n\n"
            "Change was coming\nHearts open\nYou tore\nOpen\n\n"
            "In all\nThis\nSilence\n\n"
            "Far and faded in a fold\nYou belonged to echo long ago\n\n"
            "I float through\nI see through\nI flow through\nI see through\n\nI float"
        ),
        "order": 5,
        "is_instrumental": False,
    },
]


# ---------------------------------------------------------------------------
# Per-table seeders
# ---------------------------------------------------------------------------
def _is_empty(conn: sqlite3.Connection, table: str) -> bool:
    (count,) = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
    return count == 0


def _seed_inventory(conn: sqlite3.Connection) -> int:
    if not _is_empty(conn, "inventory"):
        return 0
    conn.executemany(
        "INSERT INTO inventory (id, title, price, sizes, inventory) VALUES (?, ?, ?, ?, ?)",
        [
            (
                item["id"],
                item["title"],
                item["price"],
                dump_json(item.get("sizes", [])),
                dump_json(item["inventory"]),
            )
            for item in DEFAULT_INVENTORY
        ],
    )
    return len(DEFAULT_INVENTORY)


def _seed_events(conn: sqlite3.Connection) -> int:
    if not _is_empty(conn, "events"):
        return 0
    conn.executemany(
        """
        INSERT INTO events (id, title, date, time, venue, location,
                            description, ticket_link, is_past)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            (
                e["id"],
                e["title"],
                e["date"],
                e.get("time", ""),
                e["venue"],
                e["location"],
                e.get("description", ""),
                e.get("ticket_link", ""),
                int(is_past_date(e["date"])),
            )
            for e in DEFAULT_EVENTS
        ],
    )
    return len(DEFAULT_EVENTS)


def _seed_videos(conn: sqlite3.Connection) -> int:
    if not _is_empty(conn, "videos"):
        return 0
    conn.executemany(
        "INSERT INTO videos (id, youtube_id, title, description, sort_order) VALUES (?, ?, ?, ?, ?)",
        [
            (v["id"], v["youtube_id"], v["title"], v.get("description", ""), v["order"])
            for v in DEFAULT_VIDEOS
        ],
    )
    return len(DEFAULT_VIDEOS)


def _seed_bio(conn: sqlite3.Connection) -> int:
    existing = conn.execute("SELECT id FROM bio WHERE id = '1'").fetchone()
    if existing:
        return 0
    conn.execute(
        """
        INSERT INTO bio (id, main_text, band_image, past_members, photography)
        VALUES ('1', ?, ?, ?, ?)
        """,
        (
            dump_json(DEFAULT_BIO["main_text"]),
            DEFAULT_BIO["band_image"],
            dump_json(DEFAULT_BIO["past_members"]),
            dump_json(DEFAULT_BIO["photography"]),
        ),
    )
    return 1


def _seed_lyrics(conn: sqlite3.Connection) -> int:
    if not _is_empty(conn, "lyrics"):
        return 0
    conn.executemany(
        "INSERT INTO lyrics (id, title, lyrics, sort_order, is_instrumental) VALUES (?, ?, ?, ?, ?)",
        [
            (s["id"], s["title"], s["lyrics"], s["order"], int(s["is_instrumental"]))
            for s in DEFAULT_LYRICS
        ],
    )
    return len(DEFAULT_LYRICS)


_SEEDERS = [
    ("inventory", _seed_inventory),
    ("events", _seed_events),
    ("videos", _seed_videos),
    ("bio", _seed_bio),
    ("lyrics", _seed_lyrics),
]


def seed_database() -> Dict[str, int]:
    """
    Insert default content into every empty table.

    Returns the number of rows seeded per table.  A failure in one table is
    logged and the remaining tables are still seeded.
    """
    results: Dict[str, int] = {}
    with get_connection() as conn:
        for table, seeder in _SEEDERS:
            try:
                inserted = seeder(conn)
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                logger.error("❌ Error seeding {}: {}", table, e)
                results[table] = 0
                continue
            results[table] = inserted
            if inserted:
                logger.success("🌱 Seeded {} row(s) into {}", inserted, table)
    return results
