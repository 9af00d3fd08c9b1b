"""
discovery_catalog.py

Static TMDB ids and search terms that drive collection discovery.
"""
from dataclasses import dataclass
from typing import Dict, Tuple

TMDB_GENRE_NAMES: Dict[int, str] = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Science Fiction",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
}


@dataclass(frozen=True)
class DiscoveryCatalog:
    # (genre_id, name) pairs rotated through by infinite scroll
    rotation_genres: Tuple[Tuple[int, str], ...] = (
        (28, "Action"),
        (16, "Animation"),
        (35, "Comedy"),
        (18, "Drama"),
        (14, "Fantasy"),
        (27, "Horror"),
        (10402, "Music"),
        (9648, "Mystery"),
        (10749, "Romance"),
        (878, "Science Fiction"),
        (53, "Thriller"),
        (37, "Western"),
    )
    # Genres sampled by a full discovery run
    sample_genres: Tuple[Tuple[int, str], ...] = (
        (28, "Action"),
        (16, "Animation"),
        (14, "Fantasy"),
        (27, "Horror"),
    )
    franchises: Tuple[str, ...] = (
        "Marvel", "Star Wars", "Harry Potter", "Fast Furious", "Batman",
        "Lord of the Rings", "Jurassic", "Toy Story", "Shrek", "Matrix",
    )
    search_terms: Tuple[str, ...] = (
        "collection", "saga", "trilogy", "series", "franchise", "universe",
        "chronicles", "adventures", "legend", "story", "tales", "journey",
        "war", "battle", "hero", "super", "magic", "dragon", "space",
        "world", "kingdom", "empire", "destiny", "revenge", "return",
    )
    director_ids: Tuple[int, ...] = (
        1896,   # Christopher Nolan
        138,    # Quentin Tarantino
        1032,   # Martin Scorsese
        1327,   # Steven Spielberg
        525,    # James Cameron
        4027,   # Frank Darabont
        2710,   # David Fincher
        10987,  # J.J. Abrams
        7879,   # Ridley Scott
        488,    # Steven Soderbergh
        4945,   # Joe Russo
        1224,   # George Lucas
    )
    studio_ids: Tuple[int, ...] = (
        420,   # Marvel Studios
        3,     # Pixar
        2,     # Walt Disney Pictures
        174,   # Warner Bros.
        33,    # Universal Pictures
        1632,  # Lionsgate
        25,    # 20th Century Fox
        4,     # Paramount Pictures
        5,     # Columbia Pictures
        7,     # DreamWorks
        1429,  # Plan B Entertainment
        436,   # Sony Pictures
    )
    # sequel, prequel, franchise, ...
    collection_keyword_ids: Tuple[int, ...] = (51540, 158431, 162846, 180547, 209714)
    year_span: int = 30


DEFAULT_CATALOG = DiscoveryCatalog()
