"""
CalcNote Document Store - persists the notebook text under a single key.
"""

import json
import os
from typing import Dict, Optional

from .constants import STORAGE_FILE, STORAGE_KEY


class DocumentStore:
    """
    Saves the raw document text into a JSON file of key -> text.

    Other keys already present in the file are left untouched.
    """

    def __init__(self, file_path: str = STORAGE_FILE, key: str = STORAGE_KEY):
        self.file_path = file_path
        self.key = key

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self.file_path):
            return {}

        with open(self.file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"{self.file_path} does not contain a JSON object")
        return data

    def load(self) -> Optional[str]:
        """
        Load the saved document.

        Returns:
            str: Document text or None if nothing was saved
        """
        try:
            text = self._read_all().get(self.key)
        except (OSError, ValueError) as e:
            print(f"Error loading document: {e}")
            return None

        return text if isinstance(text, str) else None

    def save(self, text: str) -> bool:
        """
        Save the document text.

        Args:
            text (str): Raw document text

        Returns:
            bool: True if saved successfully
        """
        try:
            data = self._read_all()
            data[self.key] = text

            with open(self.file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)

            return True
        except (OSError, ValueError) as e:
            print(f"Error saving document: {e}")
            return False

    def clear(self) -> bool:
        """Remove the saved document; True if something was removed"""
        try:
            data = self._read_all()
            if self.key not in data:
                return False
            del data[self.key]

            with open(self.file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)

            return True
        except (OSError, ValueError) as e:
            print(f"Error clearing document: {e}")
            return False
