"""Discovery of media files in an extracted takeout archive."""

import logging
import re
from pathlib import Path
from typing import Callable, List, Optional

from .errors import DiscoveryError
from .models import DiscoveredFile
from .utils import find_media_files, get_relative_path

logger = logging.getLogger(__name__)

# Year folders the export creates for photos outside any album
YEAR_FOLDER_PATTERN = re.compile(r'^Photos from \d{4}$')


class MediaScanner:
    """Finds supported media files and works out the album each one belongs to."""

    def __init__(self, input_directory: Path, extensions: List[str]):
        self.input_directory = Path(input_directory)
        # Sidecars are read by the resolver, never processed as media
        self.extensions = [ext.lower().lstrip('.') for ext in extensions
                           if ext.lower().lstrip('.') != 'json']

    def album_for(self, file_path: Path) -> Optional[str]:
        """
        Album name of a discovered file.

        Files sitting directly in the input directory or in a "Photos from YYYY"
        folder are not part of any album.
        """
        parent = file_path.parent
        if parent == self.input_directory:
            return None
        if YEAR_FOLDER_PATTERN.match(parent.name):
            return None
        return parent.name

    def discover(self, on_found: Optional[Callable[[int], None]] = None) -> List[DiscoveredFile]:
        """
        Scan the input directory recursively.

        Args:
            on_found: Called with the running count after every file found

        Returns:
            Discovered files in stable, sorted walk order

        Raises:
            DiscoveryError: if the input directory is missing or cannot be read
        """
        if not self.input_directory.is_dir():
            raise DiscoveryError(f"Input directory does not exist: {self.input_directory}")

        logger.info(f"Scanning {self.input_directory} for media files...")
        discovered: List[DiscoveredFile] = []
        try:
            for file_path in find_media_files(self.input_directory, self.extensions):
                discovered.append(DiscoveredFile(path=file_path, album=self.album_for(file_path)))
                if on_found:
                    on_found(len(discovered))
        except OSError as e:
            raise DiscoveryError(f"Failed to scan {self.input_directory}: {e}") from e

        albums = {d.album for d in discovered if d.album is not None}
        logger.info(f"Found {len(discovered):,} media files in {len(albums)} albums")
        for d in discovered[:5]:
            logger.debug(f"  {get_relative_path(d.path, self.input_directory)} (album: {d.album})")
        return discovered
