from typing import Optional
import pandas as pd

from .errors import SchemaError
from .schema import COLUMNS
from .utils.logger import get_logger


class DataLoader:
    """Loads the stroke CSV, checks its header and optionally samples rows.

    Only empty fields are read as missing; sentinel strings such as "N/A"
    are left for the Cleaner to resolve.
    """

    def __init__(self, path: str, sample_size: Optional[int] = None, random_state: int = 42):
        self.path = path
        self.sample_size = sample_size
        self.random_state = random_state
        self.logger = get_logger(self.__class__.__name__)

    def load(self) -> pd.DataFrame:
        df = pd.read_csv(self.path, keep_default_na=False, na_values=[""])
        missing = [col for col in COLUMNS if col not in df.columns]
        if missing:
            raise SchemaError(f"{self.path} is missing required columns: {missing}")
        df = df[COLUMNS]
        if self.sample_size:
            df = df.sample(self.sample_size, random_state=self.random_state)
        self.logger.info(f"Loaded {self.path}: {df.shape[0]:,} rows x {df.shape[1]} cols")
        return df.reset_index(drop=True)
