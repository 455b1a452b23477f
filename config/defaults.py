from config.schema import IntegrityConfig, ScanConfig


# Themen für Demo-Daten: (Inhalt, Typ)
SESSION_TOPICS: list[tuple[str, str]] = [
    ("Verkehrsrecht", "theory"),
    ("Verkehrszeichen", "theory"),
    ("Fahrzeugtechnik", "theory"),
    ("Erste Hilfe", "theory"),
    ("Übungsplatz: Anfahren & Rangieren", "practice"),
    ("Übungsplatz: Einparken", "practice"),
    ("Straßenfahrt Innenstadt", "practice"),
    ("Überlandfahrt", "practice"),
]


def default_scan_config() -> ScanConfig:
    return ScanConfig(timeout_seconds=None, cancel_check_interval=200)


def default_integrity_config() -> IntegrityConfig:
    """Standard-Konfiguration.

    Zeitzone Asia/Ho_Chi_Minh (UTC+7, keine Sommerzeit), Warnschwelle 5 Stunden
    für einzelne Einheiten, Datenbestand unter output/training_data.json.
    """
    return IntegrityConfig(
        center_name="Ausbildungszentrum",
        timezone="Asia/Ho_Chi_Minh",
        long_session_hours=5.0,
        data_path="output/training_data.json",
        scan=default_scan_config(),
    )
