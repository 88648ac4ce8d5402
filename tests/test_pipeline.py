from pathlib import Path

import pandas as pd
import pytest
from dagster import AssetCheckSeverity, Definitions, asset, materialize

from reporte_covid import assets as modulo_assets
from reporte_covid import defs
from reporte_covid.assets import (
    casos_condados_crudos, casos_globales_crudos, check_columnas_clave,
    check_conteos_no_negativos, check_poblacion_positiva, check_regiones_excluidas,
    check_unicidad_region_fecha, check_ventana_fechas, comparacion_estados,
    graficos_reporte, muertes_globales_crudas, poblacion_condados, poblacion_global,
    reporte_excel_covid, serie_condados, serie_global, tasas_condados, tasas_estatales,
    tasas_globales, tasas_nacionales, top_estados, top_paises
)
from reporte_covid.fuentes import FuentesCovid
from reporte_covid.reporte import DestinoReporte

ASSETS_DATOS = [
    casos_condados_crudos, poblacion_condados, casos_globales_crudos,
    muertes_globales_crudas, poblacion_global, serie_condados, serie_global,
    tasas_nacionales, tasas_estatales, tasas_condados, tasas_globales,
    top_estados, top_paises, comparacion_estados,
]
CHECKS = [
    check_columnas_clave, check_ventana_fechas, check_regiones_excluidas,
    check_conteos_no_negativos, check_unicidad_region_fecha, check_poblacion_positiva,
]


@pytest.fixture(autouse=True)
def estados_de_prueba(monkeypatch):
    monkeypatch.setattr(modulo_assets, "ESTADOS_COMPARACION", ["Washington", "Oregon", "Texas"])


@pytest.fixture
def resultado(fuentes):
    resultado = materialize(ASSETS_DATOS + CHECKS, resources={"fuentes": fuentes})
    assert resultado.success
    return resultado


def test_definiciones_cargan():
    Definitions.validate_loadable(defs)


def test_serie_condados_normalizada(resultado):
    serie = resultado.output_for_node("serie_condados")

    assert set(serie["state"]) == {"Washington", "Oregon"}
    # 22 fechas unicas x 4 condados; el 31 de diciembre repetido entra una vez
    assert len(serie) == 22 * 4
    assert not serie.duplicated(subset=["state", "county", "date"]).any()


def test_tasas_estatales(resultado):
    tasas = resultado.output_for_node("tasas_estatales").set_index(["state", "date"])

    washington = tasas.loc[("Washington", pd.Timestamp("2020-12-31"))]
    assert washington["cases"] == 3170
    assert washington["population"] == 2250000 + 830000
    assert washington["cases_per_100k"] == pytest.approx(3170 * 100000 / 3080000)

    enero = tasas.loc[("Washington", pd.Timestamp("2021-01-05"))]
    assert enero["new_cases"] == 150
    assert enero["new_cases_per_100k"] == pytest.approx(150 * 100000 / 3100000)

    serie_wa = tasas.loc["Washington"]
    assert serie_wa["cases_7d"].iloc[:7].isna().all()
    assert serie_wa["cases_7d"].iloc[7:].tolist() == pytest.approx([150.0] * 15)


def test_tasas_nacionales_y_condados(resultado):
    nacion = resultado.output_for_node("tasas_nacionales")
    primer_dia = nacion.iloc[0]
    assert primer_dia["region"] == "United States"
    assert primer_dia["cases"] == 1000 + 500 + 20 + 300
    assert primer_dia["population"] == 2250000 + 830000 + 815000

    condados = resultado.output_for_node("tasas_condados")
    assert set(condados["fips"]) == {"53033", "53061", "41051"}
    assert set(condados["county"]) == {"King County", "Snohomish County", "Multnomah County"}


def test_tasas_globales_y_rankings(resultado):
    globales = resultado.output_for_node("tasas_globales")
    assert set(globales["country"]) == {"United States", "Canada", "France"}

    canada = globales[globales["country"] == "Canada"].iloc[0]
    assert canada["cases"] == 3000
    assert canada["cases_per_100k"] == pytest.approx(3000 * 100000 / 38000000)

    top = resultado.output_for_node("top_paises")
    casos = top[top["metrica"] == "cases_per_100k"]
    assert casos["country"].tolist() == ["Canada", "France", "United States"]
    assert casos["posicion"].tolist() == [1, 2, 3]
    assert casos["valor"].is_monotonic_decreasing

    estados = resultado.output_for_node("top_estados")
    assert estados.loc[estados["metrica"] == "cases_per_100k", "state"].tolist() == ["Washington", "Oregon"]


def test_comparacion_estados(resultado):
    comparacion = resultado.output_for_node("comparacion_estados")
    assert list(dict.fromkeys(comparacion.index.get_level_values("state"))) == ["Washington", "Oregon"]


def test_checks_pasan(resultado):
    evaluaciones = {e.check_name: e.passed for e in resultado.get_asset_check_evaluations()}
    assert evaluaciones == {check: True for check in [
        "check_columnas_clave", "check_ventana_fechas", "check_regiones_excluidas",
        "check_conteos_no_negativos", "check_unicidad_region_fecha", "check_poblacion_positiva",
    ]}


@asset(name="serie_condados")
def serie_condados_con_territorio():
    return pd.DataFrame({
        "date": pd.to_datetime(["2021-01-01", "2021-01-01", "2021-01-02"]),
        "state": ["Washington", "Puerto Rico", "Washington"],
        "county": ["King", "San Juan", "King"],
        "fips": ["53033", "72127", "53033"],
        "cases": [100, 40, 90],
        "deaths": [2, 1, -1],
    })


def test_checks_fallan_con_territorio_y_conteo_negativo():
    resultado = materialize(
        [serie_condados_con_territorio, check_regiones_excluidas, check_conteos_no_negativos]
    )
    # un check fallido no detiene la corrida
    assert resultado.success

    evaluaciones = {e.check_name: e for e in resultado.get_asset_check_evaluations()}
    assert set(evaluaciones) == {"check_regiones_excluidas", "check_conteos_no_negativos"}

    territorios = evaluaciones["check_regiones_excluidas"]
    assert not territorios.passed
    assert territorios.severity == AssetCheckSeverity.ERROR
    assert territorios.metadata["territorios"].value == ["Puerto Rico"]

    negativos = evaluaciones["check_conteos_no_negativos"]
    assert not negativos.passed
    assert negativos.severity == AssetCheckSeverity.WARN
    assert negativos.metadata["filas_afectadas"].value == 1


def test_fuente_faltante_detiene_la_corrida(archivos, tmp_path):
    rota = FuentesCovid(
        casos_condados=[str(archivos["casos_2020"]), str(archivos["casos_2021"])],
        poblacion_condados=str(tmp_path / "no-existe.csv"),
        casos_globales=str(archivos["casos_globales"]),
        muertes_globales=str(archivos["muertes_globales"]),
        poblacion_global=str(archivos["poblacion_global"]),
    )
    resultado = materialize(ASSETS_DATOS, resources={"fuentes": rota}, raise_on_error=False)
    assert not resultado.success


def test_reporte_completo(fuentes, archivos, tmp_path):
    destino = DestinoReporte(directorio=str(tmp_path / "reporte"), geojson_condados=str(archivos["geojson"]))
    resultado = materialize(
        ASSETS_DATOS + [graficos_reporte, reporte_excel_covid],
        resources={"fuentes": fuentes, "destino": destino},
    )
    assert resultado.success

    archivos_graficos = resultado.output_for_node("graficos_reporte")
    assert [Path(a).name for a in archivos_graficos] == [
        "nacional_casos_muertes.png", "comparacion_estados.png",
        "top_estados.png", "top_paises.png", "mapa_condados.html",
    ]
    assert all(Path(a).stat().st_size > 0 for a in archivos_graficos)

    excel = resultado.output_for_node("reporte_excel_covid")
    hojas = pd.read_excel(excel, sheet_name=None)
    assert set(hojas) == {
        "Nacional", "Estados", "Comparacion_Estados", "Top_Estados",
        "Condados_Ultimo_Dia", "Paises_Ultimo_Dia", "Top_Paises",
    }
    assert len(hojas["Condados_Ultimo_Dia"]) == 3
