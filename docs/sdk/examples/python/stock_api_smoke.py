import os
import sys

import requests

base_url = os.getenv("STOCKDESK_BASE_URL", "http://localhost:8000").rstrip("/")
identifier = os.getenv("STOCKDESK_IDENTIFIER")
password = os.getenv("STOCKDESK_PASSWORD")

if not identifier or not password:
    raise RuntimeError("STOCKDESK_IDENTIFIER and STOCKDESK_PASSWORD are required")


def main() -> int:
    token_response = requests.post(
        f"{base_url}/auth/login",
        json={"identifier": identifier, "password": password},
        timeout=15,
    )
    token_response.raise_for_status()
    headers = {"Authorization": f"Bearer {token_response.json()['access_token']}"}

    summary_response = requests.get(f"{base_url}/inventory/summary", headers=headers, timeout=15)
    summary_response.raise_for_status()

    low_stock_response = requests.get(
        f"{base_url}/inventory/stock",
        headers=headers,
        params={"stock_filter": "low-stock", "sort_field": "available_stock", "page_size": 5},
        timeout=15,
    )
    low_stock_response.raise_for_status()

    summary = summary_response.json()
    low_stock = low_stock_response.json()
    print(f"SKUs: {summary['total_products']} (physical {summary['total_physical']})")
    print(f"Out of stock: {summary['out_of_stock']}, low stock: {summary['low_stock']}")
    for item in low_stock["items"]:
        print(f"  {item['sku']}: {item['available_stock']} available")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except requests.RequestException as exc:
        print(f"Stock API probe failed: {exc}", file=sys.stderr)
        raise SystemExit(1)
