import json
import zipfile

import pandas as pd
import pytest

from reporte_covid.fuentes import FuentesCovid

INICIO_2020 = pd.Timestamp("2020-12-20")
FECHAS_2020 = pd.date_range("2020-12-20", "2020-12-31", freq="D")
# el archivo 2021 repite el 31 de diciembre
FECHAS_2021 = pd.date_range("2020-12-31", "2021-01-10", freq="D")
FECHAS_GLOBALES = pd.date_range("2020-12-20", "2021-01-10", freq="D")

# (county, state, fips, casos base, casos por dia, muertes base, muertes por dia)
CONDADOS = [
    ("King", "Washington", "53033", 1000, 100, 10, 1),
    ("Snohomish", "Washington", "53061", 500, 50, 5, 1),
    ("Unknown", "Washington", "", 20, 0, 0, 0),
    ("Multnomah", "Oregon", "41051", 300, 30, 3, 1),
    ("San Juan", "Puerto Rico", "72127", 999, 9, 9, 0),
]

CENSO = [
    # SUMLEV, STATE, COUNTY, STNAME, CTYNAME, 2020, 2021, 2022
    ("040", "53", "000", "Washington", "Washington", 7700000, 7750000, 7800000),
    ("050", "53", "033", "Washington", "King County", 2250000, 2260000, 2270000),
    ("050", "53", "061", "Washington", "Snohomish County", 830000, 840000, 850000),
    ("040", "41", "000", "Oregon", "Oregon", 4200000, 4250000, 4300000),
    ("050", "41", "051", "Oregon", "Multnomah County", 815000, 810000, 805000),
]

POBLACION_PAISES = {"United States": 331000000, "Canada": 38000000, "France": 67000000}


def _fragmento(fechas):
    filas = []
    for fecha in fechas:
        i = (fecha - INICIO_2020).days
        for county, state, fips, casos, d_casos, muertes, d_muertes in CONDADOS:
            filas.append({
                "date": f"{fecha:%Y-%m-%d}", "county": county, "state": state, "fips": fips,
                "cases": casos + d_casos * i, "deaths": muertes + d_muertes * i,
            })
    return pd.DataFrame(filas)


def _serie_jhu(escala):
    filas = [
        ("", "US", 40.0, -100.0, 10000, 1000),
        ("Ontario", "Canada", 51.2, -85.3, 1000, 100),
        ("Quebec", "Canada", 52.9, -73.5, 2000, 200),
        ("", "France", 46.2, 2.2, 3000, 300),
        ("", "Diamond Princess", 0.0, 0.0, 700, 0),
    ]
    registros = []
    for subregion, pais, lat, lon, base, diario in filas:
        registro = {"Province/State": subregion, "Country/Region": pais, "Lat": lat, "Long": lon}
        for i, fecha in enumerate(FECHAS_GLOBALES):
            registro[f"{fecha.month}/{fecha.day}/{fecha:%y}"] = (base + diario * i) // escala
        registros.append(registro)
    return pd.DataFrame(registros)


@pytest.fixture
def archivos(tmp_path):
    rutas = {
        "casos_2020": tmp_path / "us-counties-2020.csv",
        "casos_2021": tmp_path / "us-counties-2021.csv",
        "censo": tmp_path / "co-est2022-alldata.csv",
        "casos_globales": tmp_path / "confirmed_global.csv",
        "muertes_globales": tmp_path / "deaths_global.csv",
        "poblacion_global": tmp_path / "API_SP.POP.TOTL.csv",
        "poblacion_global_zip": tmp_path / "API_SP.POP.TOTL_DS2_en_csv_v2.zip",
        "geojson": tmp_path / "condados.json",
    }
    _fragmento(FECHAS_2020).to_csv(rutas["casos_2020"], index=False)
    # orden de filas distinto entre fragmentos
    _fragmento(FECHAS_2021).iloc[::-1].to_csv(rutas["casos_2021"], index=False)

    pd.DataFrame(CENSO, columns=[
        "SUMLEV", "STATE", "COUNTY", "STNAME", "CTYNAME",
        "POPESTIMATE2020", "POPESTIMATE2021", "POPESTIMATE2022",
    ]).to_csv(rutas["censo"], index=False, encoding="latin-1")

    _serie_jhu(1).to_csv(rutas["casos_globales"], index=False)
    _serie_jhu(10).to_csv(rutas["muertes_globales"], index=False)

    with open(rutas["poblacion_global"], "w", encoding="utf-8") as f:
        f.write('"Data Source","World Development Indicators"\n')
        f.write('"Generated","test"\n')
        f.write('"Last Updated Date","2024-01-01"\n')
        f.write('"Notes","fixture"\n')
        f.write('"Country Name","Country Code","Indicator Name","Indicator Code","2019","2020","2021"\n')
        for pais, poblacion in POBLACION_PAISES.items():
            f.write(f'"{pais}","XXX","Population, total","SP.POP.TOTL","{poblacion - 1000}","{poblacion}","{poblacion + 1000}"\n')

    # misma forma que la descarga del Banco Mundial: metadatos y datos en un zip
    with zipfile.ZipFile(rutas["poblacion_global_zip"], "w") as archivo_zip:
        archivo_zip.writestr(
            "Metadata_Country_API_SP.POP.TOTL_DS2_en_csv_v2.csv",
            '"Country Code","Region"\n"USA","North America"\n',
        )
        archivo_zip.write(rutas["poblacion_global"], "API_SP.POP.TOTL_DS2_en_csv_v2.csv")

    geojson = {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature", "id": fips, "properties": {},
                "geometry": {"type": "Polygon", "coordinates": [[[lon, 45], [lon + 1, 45], [lon + 1, 46], [lon, 45]]]},
            }
            for fips, lon in [("53033", -122), ("53061", -121), ("41051", -123)]
        ],
    }
    rutas["geojson"].write_text(json.dumps(geojson), encoding="utf-8")
    return rutas


@pytest.fixture
def fuentes(archivos):
    return FuentesCovid(
        casos_condados=[str(archivos["casos_2020"]), str(archivos["casos_2021"])],
        poblacion_condados=str(archivos["censo"]),
        casos_globales=str(archivos["casos_globales"]),
        muertes_globales=str(archivos["muertes_globales"]),
        poblacion_global=str(archivos["poblacion_global_zip"]),
        filas_omitidas_poblacion_global=4,
    )
