"""Circuit catalogue offered by /postcheckin."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Track:
    key: str
    display_name: str
    length_km: float
    image: str


TRACKS: dict[str, Track] = {
    track.key: track
    for track in (
        Track("abu_dhabi", "Abu Dhabi \U0001f1e6\U0001f1ea", 5.554, "Abu_Dhabi_Circuit.png"),
        Track("australia", "Australia \U0001f1e6\U0001f1fa", 5.278, "Australia_Circuit.png"),
        Track("austria", "Austria \U0001f1e6\U0001f1f9", 4.318, "Austria_Circuit.png"),
        Track("azerbaijan", "Azerbaijan \U0001f1e6\U0001f1ff", 6.003, "Baku_Circuit.png"),
        Track("bahrain", "Bahrain \U0001f1e7\U0001f1ed", 5.412, "Bahrain_Circuit.png"),
        Track("belgium", "Belgium \U0001f1e7\U0001f1ea", 7.004, "Belgium_Circuit.png"),
        Track("brazil", "Brazil \U0001f1e7\U0001f1f7", 4.309, "Brazil_Circuit.png"),
        Track("canada", "Canada \U0001f1e8\U0001f1e6", 4.361, "Canada_Circuit.png"),
        Track("cota", "C.O.T.A. \U0001f1fa\U0001f1f8", 5.513, "USA_Circuit.png"),
        Track("china", "China \U0001f1e8\U0001f1f3", 5.451, "China_Circuit.png"),
        Track(
            "great_britain",
            "Great Britain \U0001f1ec\U0001f1e7",
            5.891,
            "Great_Britain_Circuit.png",
        ),
        Track("hungary", "Hungary \U0001f1ed\U0001f1fa", 4.381, "Hungary_Circuit.png"),
        Track("imola", "Imola \U0001f1f8\U0001f1f2", 4.909, "Emilia_Romagna_Circuit.png"),
        Track("japan", "Japan \U0001f1ef\U0001f1f5", 5.807, "Japan_Circuit.png"),
        Track("las_vegas", "Las Vegas \U0001f1fa\U0001f1f8", 6.201, "Las_Vegas_Circuit.png"),
        Track("mexico", "Mexico \U0001f1f2\U0001f1fd", 4.304, "Mexico_Circuit.png"),
        Track("miami", "Miami \U0001f1fa\U0001f1f8", 5.412, "Miami_Circuit.png"),
        Track("monaco", "Monaco \U0001f1f2\U0001f1e8", 3.337, "Monaco_Circuit.png"),
        Track("monza", "Monza \U0001f1ee\U0001f1f9", 5.793, "Italy_Circuit.png"),
        Track("netherlands", "Netherlands \U0001f1f3\U0001f1f1", 4.259, "Netherlands_Circuit.png"),
        Track("portugal", "Portugal \U0001f1f5\U0001f1f9", 4.684, "Portugal_Circuit.png"),
        Track("qatar", "Qatar \U0001f1f6\U0001f1e6", 5.403, "Qatar_Circuit.png"),
        Track(
            "saudi_arabia",
            "Saudi Arabia \U0001f1f8\U0001f1e6",
            6.174,
            "Saudi_Arabia_Circuit.png",
        ),
        Track("singapore", "Singapore \U0001f1f8\U0001f1ec", 5.063, "Singapore_Circuit.png"),
        Track("spain", "Spain \U0001f1ea\U0001f1f8", 4.655, "Spain_Circuit.png"),
    )
}
