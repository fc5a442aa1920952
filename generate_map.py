#!/usr/bin/env python3
"""
PollutionWatch - Generate Interactive Report Map
Fetches the stored pollution reports and writes a standalone HTML map.
"""
import asyncio
import os
import sys
from collections import Counter

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from src.core.config import get_settings
from src.core.errors import ConfigurationError, FetchError
from src.core.logging import get_logger, setup_logging
from src.ingestion.backend_gateway import SupabaseGateway
from src.visualization.map_view import MapView

logger = get_logger("generate_map")


async def generate(output_path: str) -> int:
    settings = get_settings()

    async with SupabaseGateway.from_settings(settings) as gateway:
        map_view = MapView(
            gateway,
            center=(settings.map_center_lat, settings.map_center_lon),
            zoom=settings.map_zoom,
            page_size=settings.reports_page_size,
        )
        async with map_view:
            if map_view.error:
                raise FetchError(map_view.error)

            markers = map_view.markers
            print(f"\nReports on map: {len(markers)}")
            print(f"Skipped (no usable coordinates): {map_view.skipped_count}")

            if markers:
                print("\nBy pollution type:")
                for category, count in Counter(m.category for m in markers).most_common():
                    print(f"  - {category:<20} {count}")

            map_view.save(output_path)

    return len(markers)


def main():
    setup_logging(get_settings())

    print("=" * 60)
    print("PollutionWatch - Generating Report Map")
    print("=" * 60)

    output_path = sys.argv[1] if len(sys.argv) > 1 else os.path.join(
        os.path.dirname(os.path.abspath(__file__)), "pollution_report_map.html"
    )

    try:
        asyncio.run(generate(output_path))
    except ConfigurationError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)
    except FetchError as e:
        logger.error(e.message)
        print(f"ERROR: {e.message}")
        sys.exit(2)

    print(f"\nMap saved to: {output_path}")
    print("\nOpen the file in your browser to view the interactive map!")
    print("=" * 60)


if __name__ == "__main__":
    main()
