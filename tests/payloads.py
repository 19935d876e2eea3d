"""Sample Tive documents shared by the test modules"""

SAMPLE_PAYLOAD = {
    "EntryTimeEpoch": 1739215646000,
    "EntryTimeUtc": "2025-02-10T19:27:26Z",
    "DeviceId": "863257063350583",
    "DeviceName": "A571992",
    "Temperature": {"Celsius": 10.078125, "Fahrenheit": 50.140625},
    "Humidity": {"Percentage": 38.7},
    "Light": {"Lux": 0},
    "Accelerometer": {"G": 1.0003, "X": -0.5625, "Y": 0.8125, "Z": 0.1875},
    "Battery": {"Percentage": 65, "Estimation": "85 Days", "IsCharging": False},
    "Cellular": {"SignalStrength": "Good", "Dbm": -85},
    "Location": {
        "Latitude": 40.810562,
        "Longitude": -73.879285,
        "FormattedAddress": "114 Hunts Point Market, Bronx, NY 10474, USA",
        "LocationMethod": "wifi",
        "Accuracy": {"Meters": 23, "Kilometers": 0.023, "Miles": 0.014},
        "WifiAccessPointUsedCount": 5,
    },
}
