"""
Sensor Export - Locale strings.

Indonesian (id) is the dashboard's default language; English (en)
is the alternative offered in settings.
"""

from typing import Dict, List


DEFAULT_LOCALE = "id"
SUPPORTED_LOCALES = ("id", "en")


MONTH_NAMES: Dict[str, List[str]] = {
    "id": [
        "Januari", "Februari", "Maret", "April", "Mei", "Juni",
        "Juli", "Agustus", "September", "Oktober", "November", "Desember",
    ],
    "en": [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
}

# Separator between hours, minutes and seconds
TIME_SEPARATORS: Dict[str, str] = {
    "id": ".",
    "en": ":",
}


TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "id": {
        "STATUS_SAFE": "AMAN",
        "STATUS_DANGER": "BAHAYA",
        "REPORT_TITLE": "Laporan Analitik Sensor",
        "GENERATED_ON": "Dibuat pada",
        "PERIOD": "Periode",
        "TOTAL_RECORDS": "Total Data",
        "AVERAGE": "Rata-rata",
        "MAXIMUM": "Maksimum",
        "MINIMUM": "Minimum",
        "DANGER_EVENTS": "Kejadian Bahaya",
        "PAGE_OF": "Halaman {page} dari {total}",
        "PERIOD_6H": "6 Jam Terakhir",
        "PERIOD_24H": "24 Jam Terakhir",
        "PERIOD_7D": "7 Hari Terakhir",
        "EXPORT_SUCCESS_TITLE": "Export Berhasil ✅",
        "EXPORT_SUCCESS_BODY": 'File {file_type} "{filename}" berhasil disimpan di folder {folder}',
    },
    "en": {
        "STATUS_SAFE": "SAFE",
        "STATUS_DANGER": "DANGER",
        "REPORT_TITLE": "Sensor Analytics Report",
        "GENERATED_ON": "Generated on",
        "PERIOD": "Period",
        "TOTAL_RECORDS": "Total Records",
        "AVERAGE": "Average",
        "MAXIMUM": "Max",
        "MINIMUM": "Min",
        "DANGER_EVENTS": "Danger events",
        "PAGE_OF": "Page {page} of {total}",
        "PERIOD_6H": "Last 6 Hours",
        "PERIOD_24H": "Last 24 Hours",
        "PERIOD_7D": "Last 7 Days",
        "EXPORT_SUCCESS_TITLE": "Export Successful ✅",
        "EXPORT_SUCCESS_BODY": '{file_type} file "{filename}" saved to the {folder} folder',
    },
}


def translate(key: str, locale: str = DEFAULT_LOCALE, **kwargs) -> str:
    """Look up a string, falling back to the default locale then the key."""
    table = TRANSLATIONS.get(locale) or TRANSLATIONS[DEFAULT_LOCALE]
    text = table.get(key, TRANSLATIONS[DEFAULT_LOCALE].get(key, key))
    return text.format(**kwargs) if kwargs else text
