"""
County data loaders for the margin-of-error primer.
===================================================

The primer needs one table of counties with two survey estimates and
their published margins of error:

1. **Median household income** (ACS table B19013) and its MoE.
2. **Share of adults 25+ with a bachelor's degree or higher** (derived
   from ACS table S1501) and its MoE.

Usage
-----
Option A -- Real counties from a shapefile (path, .zip, or URL):

    gdf = load_counties("data/counties.zip")

The shapefile's attribute table must carry the five columns named in
``DEFAULT_COLUMNS`` (or pass your own mapping).

Option B -- Offline, synthetic counties on a square grid:

    gdf = simulate_counties()

Both return a GeoDataFrame with canonical columns
    name, income, income_moe, income_se, schooling, schooling_moe,
    schooling_se, geometry
"""

import shutil
import tempfile
import urllib.error
import urllib.request
import zipfile
from pathlib import Path
from urllib.parse import urlparse

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry import box

from .moe import Z90, coefficient_of_variation, moe_to_se, reliability

DATA_DIR = Path(__file__).parent / "data"

# canonical name -> attribute column in the shapefile (10-char dBase limit)
DEFAULT_COLUMNS = {
    "name": "NAME",
    "income": "INCOME",
    "income_moe": "INCOME_MOE",
    "schooling": "BACHELORS",
    "schooling_moe": "BACH_MOE",
}

URL_SCHEMES = ("http", "https", "ftp", "file")


def fetch_shapefile(url, cache_dir=None):
    """
    Download and unpack a zipped shapefile.

    Parameters
    ----------
    url : str
        Location of a .zip archive containing one shapefile. ``file://``
        URLs are accepted.
    cache_dir : str or Path, optional
        Where the archive and its contents are kept (default data/).
        A valid archive already present there is reused without
        downloading; a download that is not a zip archive is discarded.

    Returns
    -------
    Path : the first .shp file found in the extracted archive
    """
    cache_dir = Path(cache_dir) if cache_dir is not None else DATA_DIR
    cache_dir.mkdir(parents=True, exist_ok=True)
    archive = cache_dir / Path(urlparse(url).path).name

    if not zipfile.is_zipfile(archive):
        print(f"  [Data] Downloading {url}")
        req = urllib.request.Request(url, headers={
            "User-Agent": "moeprimer/1.0"
        })
        partial = archive.with_name(archive.name + ".part")
        try:
            with urllib.request.urlopen(req, timeout=60) as resp:
                partial.write_bytes(resp.read())
        except (urllib.error.URLError, urllib.error.HTTPError) as e:
            partial.unlink(missing_ok=True)
            raise ConnectionError(
                f"Could not download shapefile from {url}: {e}\n"
                f"Download it manually and save it to {archive}"
            ) from e
        if not zipfile.is_zipfile(partial):
            partial.unlink()
            raise ValueError(f"{url} did not return a valid zip archive")
        partial.replace(archive)

    extract_dir = cache_dir / archive.stem
    if not extract_dir.exists():
        staging = Path(tempfile.mkdtemp(prefix=archive.stem + ".", dir=cache_dir))
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(staging)
        except zipfile.BadZipFile as e:
            shutil.rmtree(staging, ignore_errors=True)
            archive.unlink(missing_ok=True)
            raise ValueError(f"{archive} is not a valid zip archive") from e
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        staging.rename(extract_dir)

    shapefiles = sorted(extract_dir.rglob("*.shp"))
    if not shapefiles:
        raise FileNotFoundError(f"No .shp file inside {archive}")
    return shapefiles[0]


def _resolve_source(source, cache_dir):
    """Turn a path, .zip path or URL into a local .shp path."""
    source = str(source)
    if urlparse(source).scheme in URL_SCHEMES:
        return fetch_shapefile(source, cache_dir=cache_dir)

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(
            f"Shapefile not found at {path}. "
            "Pass a path, a .zip archive or a URL."
        )
    if path.suffix.lower() == ".zip":
        return fetch_shapefile(path.resolve().as_uri(), cache_dir=cache_dir)
    return path


def load_counties(source, columns=None, z=Z90, cache_dir=None):
    """
    Read county estimates from a shapefile.

    Parameters
    ----------
    source : str or Path
        Shapefile path, zipped shapefile, or URL of a zipped shapefile.
    columns : dict, optional
        Canonical name -> attribute column (default DEFAULT_COLUMNS).
    z : float
        Multiplier the MoEs were published at (1.645 for ACS 90% MoEs).
    cache_dir : str or Path, optional
        Download / extraction directory for zipped sources.

    Returns
    -------
    GeoDataFrame with canonical columns and derived standard errors.
    """
    columns = dict(DEFAULT_COLUMNS if columns is None else columns)
    shp_path = _resolve_source(source, cache_dir)

    print(f"  [Data] Reading {shp_path}")
    gdf = gpd.read_file(shp_path)

    missing = [col for col in columns.values() if col not in gdf.columns]
    if missing:
        raise ValueError(
            f"{shp_path} is missing attribute column(s) {missing}; "
            f"available: {list(gdf.columns)}"
        )

    gdf = gdf[list(columns.values()) + ["geometry"]].rename(
        columns={v: k for k, v in columns.items()}
    )
    for col in ("income", "income_moe", "schooling", "schooling_moe"):
        gdf[col] = gdf[col].astype(float)

    gdf = gdf.dropna(subset=["income", "income_moe", "schooling", "schooling_moe"]).copy()
    gdf["income_se"] = moe_to_se(gdf["income_moe"].to_numpy(), z=z)
    gdf["schooling_se"] = moe_to_se(gdf["schooling_moe"].to_numpy(), z=z)
    gdf = gdf.reset_index(drop=True)
    gdf.attrs["source"] = str(shp_path)
    return gdf


def simulate_counties(n_rows=10, n_cols=12, seed=42):
    """
    Simulate a grid of counties mimicking ACS 5-year county estimates.

    DGP:
        population  ~ LogNormal(10, 1.2)
        income      ~ LogNormal(log 55, 0.25)        (thousands of dollars)
        CV(income)  = 0.6 / sqrt(population / 1000), clipped to [0.02, 0.45]
        schooling   = logistic(-4 + 0.055*income + N(0, 0.3))
        SE(schooling) = sqrt(p(1-p) / (0.02 * population))

    Small counties therefore carry large margins of error, as in the ACS.

    Returns
    -------
    GeoDataFrame with canonical columns on unit squares.
    """
    rng = np.random.default_rng(seed)
    n = n_rows * n_cols

    population = rng.lognormal(10, 1.2, n)
    income = rng.lognormal(np.log(55), 0.25, n)
    income_cv = np.clip(0.6 / np.sqrt(population / 1000), 0.02, 0.45)
    income_se = income * income_cv

    z = -4 + 0.055 * income + rng.normal(0, 0.3, n)
    schooling = 1 / (1 + np.exp(-z))
    schooling_se = np.sqrt(schooling * (1 - schooling) / (0.02 * population))

    geometry = [box(c, r, c + 1, r + 1) for r in range(n_rows) for c in range(n_cols)]
    gdf = gpd.GeoDataFrame(
        {
            "name": [f"County {i + 1:03d}" for i in range(n)],
            "population": np.round(population).astype(int),
            "income": income,
            "income_moe": income_se * Z90,
            "income_se": income_se,
            "schooling": schooling,
            "schooling_moe": schooling_se * Z90,
            "schooling_se": schooling_se,
        },
        geometry=geometry,
    )
    gdf.attrs["source"] = "simulated"
    return gdf


def load_data(source=None, mode="auto", columns=None, seed=42, cache_dir=None):
    """
    Load county estimates, falling back to simulation when allowed.

    Parameters
    ----------
    source : str or Path, optional
        Shapefile path / .zip / URL.
    mode : {"auto", "shapefile", "simulate"}
        "shapefile" requires source and propagates errors; "simulate"
        ignores source; "auto" tries source (if any) then simulates.

    Returns
    -------
    GeoDataFrame (see load_counties)
    """
    if mode not in ("auto", "shapefile", "simulate"):
        raise ValueError(f"unknown mode {mode!r}")

    if mode == "simulate":
        print("[Data] Using simulated counties")
        return simulate_counties(seed=seed)

    if mode == "shapefile":
        if source is None:
            raise ValueError("mode='shapefile' needs a shapefile source")
        return load_counties(source, columns=columns, cache_dir=cache_dir)

    if source is not None:
        try:
            print(f"[Data] Trying shapefile {source}...")
            gdf = load_counties(source, columns=columns, cache_dir=cache_dir)
            print(f"[Data] Loaded {len(gdf)} counties")
            return gdf
        except (FileNotFoundError, ConnectionError, ValueError) as e:
            print(f"[Data] Shapefile unavailable: {e}")

    print("[Data] Using simulated counties")
    return simulate_counties(seed=seed)


def estimate_summary(gdf, z=Z90):
    """
    One row per estimate column: median estimate, median MoE, median CV
    and the share of counties graded low reliability.

    Returns
    -------
    pandas.DataFrame indexed by variable name
    """
    rows = []
    for var in ("income", "schooling"):
        values = gdf[var].to_numpy(dtype=float)
        errors = gdf[f"{var}_se"].to_numpy(dtype=float)
        cv = coefficient_of_variation(values, errors)
        rows.append({
            "variable": var,
            "median": np.median(values),
            "median_moe": np.median(errors) * z,
            "median_cv": np.nanmedian(cv),
            "share_low": np.mean(reliability(cv) == "low"),
        })
    return pd.DataFrame(rows).set_index("variable")
