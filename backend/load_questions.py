"""
Question Loader Script - uploads a question workbook to the import API.

Sends the .xlsx file to the admin import endpoint and prints the summary.
This can be run from inside the backend container or from the host.

Usage:
    python load_questions.py questions.xlsx                          # Uses default URL
    python load_questions.py questions.xlsx http://localhost:8000    # Custom API URL
    ADMIN_USER_ID=<uuid> python load_questions.py questions.xlsx     # Acting admin

Options (environment):
    API_URL                  base URL when not given on the command line
    ADMIN_USER_ID            id of an admin user, sent as X-User-ID
    CREATE_POSITIONS=1       create unknown positions instead of leaving them empty
    CREATE_SHIP_TYPES=1      create unknown ship types instead of leaving them empty
    KEEP_DUPLICATES=1        import rows whose text already exists
"""

import os
import sys

import httpx

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def upload(import_url: str, path: str, admin_id: str) -> httpx.Response:
    form = {
        "skip_duplicates": "false" if _flag("KEEP_DUPLICATES") else "true",
        "create_positions": "true" if _flag("CREATE_POSITIONS") else "false",
        "create_ship_types": "true" if _flag("CREATE_SHIP_TYPES") else "false",
    }
    with open(path, "rb") as f:
        files = {"file": (os.path.basename(path), f, XLSX_MEDIA_TYPE)}
        with httpx.Client(timeout=120.0) as client:
            return client.post(import_url, files=files, data=form,
                               headers={"X-User-ID": admin_id})


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)

    path = sys.argv[1]
    api_url = sys.argv[2] if len(sys.argv) > 2 else os.getenv("API_URL", "http://localhost:8000")
    import_url = f"{api_url.rstrip('/')}/api/admin/questions/import"

    admin_id = os.getenv("ADMIN_USER_ID")
    if not admin_id:
        print("Error: set ADMIN_USER_ID to the id of an admin user")
        sys.exit(1)

    if not os.path.exists(path):
        print(f"Error: Could not find {path}")
        sys.exit(1)

    print(f"Uploading: {path}")
    print(f"Sending to: {import_url}")
    print()

    try:
        response = upload(import_url, path, admin_id)
    except httpx.HTTPError as e:
        print(f"Request failed: {e}")
        sys.exit(1)

    result = response.json()
    if response.status_code not in (200, 500):
        print(f"HTTP Error {response.status_code}: {result.get('detail', result)}")
        sys.exit(1)

    print("=" * 60)
    print("IMPORT SUMMARY" if response.status_code == 200 else "IMPORT ABORTED (nothing saved)")
    print("=" * 60)
    print(f"  Imported:  {result.get('imported_count', '?')}")
    print(f"  Skipped:   {result.get('skipped_count', '?')}")
    print(f"  Errors:    {result.get('error_count', '?')}")
    print(f"  Warnings:  {len(result.get('warnings', []))}")
    print("=" * 60)
    print()

    for error in result.get("errors", []):
        print(f"  ❌ {error}")
    for warning in result.get("warnings", []):
        print(f"  ⚠️  {warning}")

    if response.status_code != 200:
        sys.exit(1)
    print()
    print("✅ Import complete!")


if __name__ == "__main__":
    main()
