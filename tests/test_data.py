import zipfile
from pathlib import Path

import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import box

from moeprimer import data
from moeprimer.data import (
    DEFAULT_COLUMNS, estimate_summary, fetch_shapefile, load_counties, load_data,
    simulate_counties,
)
from moeprimer.moe import Z90

CANONICAL = ["name", "income", "income_moe", "income_se", "schooling",
             "schooling_moe", "schooling_se", "geometry"]


@pytest.fixture
def shapefile(tmp_path):
    gdf = gpd.GeoDataFrame(
        {
            "NAME": ["Adams", "Brown", "Clark"],
            "INCOME": [52.1, 61.4, 47.9],
            "INCOME_MOE": [3.29, 1.645, 8.225],
            "BACHELORS": [0.21, 0.34, 0.18],
            "BACH_MOE": [0.0329, 0.01645, 0.04935],
            "OTHER": [1, 2, 3],
        },
        geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1), box(2, 0, 3, 1)],
        crs="EPSG:4326",
    )
    path = tmp_path / "shp" / "counties.shp"
    path.parent.mkdir()
    gdf.to_file(path)
    return path


@pytest.fixture
def zipped(shapefile, tmp_path):
    archive = tmp_path / "counties.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        for part in shapefile.parent.iterdir():
            zf.write(part, arcname=part.name)
    return archive


def test_simulated_counties_have_canonical_columns():
    gdf = simulate_counties(n_rows=3, n_cols=4, seed=1)
    assert len(gdf) == 12
    for col in CANONICAL:
        assert col in gdf.columns
    np.testing.assert_allclose(gdf["income_moe"], gdf["income_se"] * Z90)
    assert (gdf["income"] > 0).all() and (gdf["schooling_se"] > 0).all()
    assert gdf.geometry.is_valid.all()
    assert gdf.attrs["source"] == "simulated"


def test_simulation_is_reproducible():
    a = simulate_counties(seed=5)
    b = simulate_counties(seed=5)
    np.testing.assert_array_equal(a["income"], b["income"])


def test_small_counties_have_wider_margins():
    gdf = simulate_counties(n_rows=10, n_cols=10, seed=2)
    cv = gdf["income_se"] / gdf["income"]
    small = gdf["population"] < gdf["population"].median()
    assert cv[small].mean() > cv[~small].mean()


def test_load_counties_renames_and_derives_se(shapefile):
    gdf = load_counties(shapefile)
    assert set(gdf.columns) == set(CANONICAL)
    assert "OTHER" not in gdf.columns
    np.testing.assert_allclose(gdf["income_se"], [2.0, 1.0, 5.0])
    np.testing.assert_allclose(gdf["schooling_se"], [0.02, 0.01, 0.03])
    assert gdf["name"].tolist() == ["Adams", "Brown", "Clark"]


def test_load_counties_from_zip(zipped, tmp_path):
    gdf = load_counties(zipped, cache_dir=tmp_path / "cache")
    assert len(gdf) == 3
    assert (tmp_path / "cache" / "counties" / "counties.shp").exists()


def test_fetch_shapefile_from_file_url(zipped, tmp_path):
    shp = fetch_shapefile(zipped.resolve().as_uri(), cache_dir=tmp_path / "dl")
    assert shp.suffix == ".shp"
    # a second call reuses the cached archive
    assert fetch_shapefile(zipped.resolve().as_uri(), cache_dir=tmp_path / "dl") == shp


def test_data_dir_sits_beside_the_module():
    assert data.DATA_DIR == Path(data.__file__).parent / "data"


def test_fetch_shapefile_defaults_to_data_dir(zipped, tmp_path, monkeypatch):
    monkeypatch.setattr(data, "DATA_DIR", tmp_path / "default")
    shp = fetch_shapefile(zipped.resolve().as_uri())
    assert (tmp_path / "default" / "counties.zip").exists()
    assert (tmp_path / "default") in shp.parents


def test_fetch_shapefile_unreachable_url(tmp_path):
    url = (tmp_path / "missing.zip").resolve().as_uri()
    with pytest.raises(ConnectionError):
        fetch_shapefile(url, cache_dir=tmp_path / "dl")


def test_bad_download_is_not_cached(zipped, tmp_path):
    src = tmp_path / "remote" / "counties.zip"
    src.parent.mkdir()
    src.write_text("<html>503 Service Unavailable</html>")
    url = src.resolve().as_uri()
    cache = tmp_path / "dl"

    with pytest.raises(ValueError, match="zip"):
        fetch_shapefile(url, cache_dir=cache)
    assert list(cache.iterdir()) == []

    src.write_bytes(zipped.read_bytes())
    assert fetch_shapefile(url, cache_dir=cache).suffix == ".shp"


def test_corrupt_cached_archive_is_downloaded_again(zipped, tmp_path):
    cache = tmp_path / "dl"
    cache.mkdir()
    (cache / "counties.zip").write_bytes(b"truncated")
    shp = fetch_shapefile(zipped.resolve().as_uri(), cache_dir=cache)
    assert shp.suffix == ".shp"
    assert zipfile.is_zipfile(cache / "counties.zip")


def test_failed_extraction_leaves_no_directory(zipped, tmp_path, monkeypatch):
    cache = tmp_path / "dl"
    url = zipped.resolve().as_uri()

    def disk_full(self, path=None, members=None, pwd=None):
        raise OSError("No space left on device")

    with monkeypatch.context() as m:
        m.setattr(zipfile.ZipFile, "extractall", disk_full)
        with pytest.raises(OSError):
            fetch_shapefile(url, cache_dir=cache)
    assert not (cache / "counties").exists()
    assert sorted(p.name for p in cache.iterdir()) == ["counties.zip"]

    assert fetch_shapefile(url, cache_dir=cache).suffix == ".shp"


def test_archive_without_shapefile(tmp_path):
    archive = tmp_path / "empty.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("README.txt", "nothing here")
    with pytest.raises(FileNotFoundError):
        load_counties(archive, cache_dir=tmp_path / "cache")


def test_missing_columns(shapefile):
    columns = dict(DEFAULT_COLUMNS, income="MEDINC")
    with pytest.raises(ValueError, match="MEDINC"):
        load_counties(shapefile, columns=columns)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_counties(tmp_path / "nope.shp")


def test_load_data_falls_back_to_simulation(tmp_path, capsys):
    gdf = load_data(tmp_path / "nope.shp", mode="auto", seed=1)
    assert gdf.attrs["source"] == "simulated"
    assert "Shapefile unavailable" in capsys.readouterr().out


def test_load_data_shapefile_mode_propagates_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_data(tmp_path / "nope.shp", mode="shapefile")
    with pytest.raises(ValueError):
        load_data(None, mode="shapefile")


def test_load_data_prefers_shapefile(shapefile):
    gdf = load_data(shapefile)
    assert len(gdf) == 3
    assert gdf.attrs["source"] == str(shapefile)


def test_estimate_summary(counties):
    table = estimate_summary(counties)
    assert list(table.index) == ["income", "schooling"]
    assert {"median", "median_moe", "median_cv", "share_low"} <= set(table.columns)
    assert ((table["share_low"] >= 0) & (table["share_low"] <= 1)).all()
