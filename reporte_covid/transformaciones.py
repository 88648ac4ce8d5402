# transformaciones.py
"""Etapas puras del reporte: normalizar, pivotar, agregar, calcular tasas y rankear.

Todas reciben DataFrames y devuelven uno nuevo, sin modificar la entrada.
"""
from datetime import datetime

import pandas as pd
from dagster import get_dagster_logger

from .constantes import COLUMNAS_CONTEO, POR_100K, TOP_N
from .errores import ColumnaFechaMalformada

FORMATO_FECHA_ANCHA = "%m/%d/%y"
VENTANA_DIAS = 7
VENTANAS = ("calendario", "posicion")
DELTAS = [
    ("cases", "new_cases", "cases_7d"),
    ("deaths", "new_deaths", "deaths_7d"),
]
CAMPOS_CONTEO = ["cases", "deaths", "new_cases", "new_deaths", "cases_7d", "deaths_7d"]


def normalizar(fragmentos, excluidas, inicio, fin, columna_region="state", claves=None,
               deduplicar=True) -> pd.DataFrame:
    """Une los fragmentos anuales en una sola serie filtrada.

    Args:
        fragmentos: DataFrame o lista de DataFrames (uno por archivo anual).
        excluidas: regiones a descartar (territorios fuera de los 50 estados).
        inicio, fin: ventana de analisis, ambos extremos incluidos.
        columna_region: columna contra la que se aplica ``excluidas``.
        claves: columnas que identifican una region para deduplicar. Por
            defecto, todas las que no son fecha ni conteo.
        deduplicar: si es True, una fecha repetida entre fragmentos conserva
            solo la primera aparicion. Si es False pasan ambas filas y la
            agregacion las suma.
    """
    if isinstance(fragmentos, pd.DataFrame):
        fragmentos = [fragmentos]
    serie = pd.concat(list(fragmentos), ignore_index=True)
    inicio, fin = pd.Timestamp(inicio), pd.Timestamp(fin)

    serie = serie[~serie[columna_region].isin(excluidas)]
    serie = serie[(serie["date"] >= inicio) & (serie["date"] <= fin)]

    if deduplicar:
        if claves is None:
            claves = [c for c in serie.columns if c not in COLUMNAS_CONTEO and c != "date"]
        antes = len(serie)
        serie = serie.drop_duplicates(subset=list(claves) + ["date"], keep="first")
        if len(serie) < antes:
            get_dagster_logger().debug(f"normalizar: {antes - len(serie)} filas repetidas entre fragmentos")

    return serie.sort_values([columna_region, "date"]).reset_index(drop=True)


def pivotar_ancho_a_largo(ancho: pd.DataFrame, columnas_id, nombre_valor: str) -> pd.DataFrame:
    columnas_id = list(columnas_id)
    columnas_fecha = [c for c in ancho.columns if c not in columnas_id]
    for col in columnas_fecha:
        try:
            datetime.strptime(str(col), FORMATO_FECHA_ANCHA)
        except ValueError as e:
            raise ColumnaFechaMalformada(str(col)) from e

    largo = ancho.melt(
        id_vars=columnas_id, value_vars=columnas_fecha,
        var_name="date", value_name=nombre_valor
    )
    largo["date"] = pd.to_datetime(largo["date"], format=FORMATO_FECHA_ANCHA)
    largo[nombre_valor] = pd.to_numeric(largo[nombre_valor], errors="coerce")
    return largo


def armar_serie_global(casos_anchos: pd.DataFrame, muertes_anchas: pd.DataFrame) -> pd.DataFrame:
    ids = ["country", "subregion"]
    casos = pivotar_ancho_a_largo(casos_anchos.drop(columns=["lat", "long"], errors="ignore"), ids, "cases")
    muertes = pivotar_ancho_a_largo(muertes_anchas.drop(columns=["lat", "long"], errors="ignore"), ids, "deaths")
    serie = casos.merge(muertes, on=ids + ["date"], how="outer")
    return serie[["date", "country", "subregion", "cases", "deaths"]].sort_values(
        ["country", "subregion", "date"]
    ).reset_index(drop=True)


def homologar_paises(serie: pd.DataFrame, nombres: dict) -> pd.DataFrame:
    serie = serie.copy()
    serie["country"] = serie["country"].replace(nombres)
    return serie


def agregar(registros: pd.DataFrame, por) -> pd.DataFrame:
    """Suma casos y muertes por clave; los conteos faltantes cuentan como cero."""
    por = [por] if isinstance(por, str) else list(por)
    agregado = registros.groupby(por, sort=True)[COLUMNAS_CONTEO].sum(min_count=0)
    return agregado.reset_index()


def sumar_poblacion(poblacion: pd.DataFrame, por) -> pd.DataFrame:
    por = [por] if isinstance(por, str) else list(por)
    return poblacion.groupby(por, sort=True)["population"].sum().reset_index()


def _valor_desplazado(serie: pd.DataFrame, columna_region: str, col: str, dias: int) -> pd.Series:
    # valor de la misma region `dias` dias calendario antes; NaN si esa fecha no esta
    indexado = serie.set_index([columna_region, "date"])[col]
    claves = pd.MultiIndex.from_arrays(
        [serie[columna_region], serie["date"] - pd.Timedelta(days=dias)]
    )
    return pd.Series(indexado.reindex(claves).to_numpy(), index=serie.index)


def _deltas_calendario(serie: pd.DataFrame, columna_region: str) -> pd.DataFrame:
    for col, nuevo, semanal in DELTAS:
        serie[nuevo] = serie[col] - _valor_desplazado(serie, columna_region, col, 1)
        serie[semanal] = (serie[col] - _valor_desplazado(serie, columna_region, col, VENTANA_DIAS)) / VENTANA_DIAS
    return serie


def _deltas_posicion(serie: pd.DataFrame, columna_region: str) -> pd.DataFrame:
    grupos = serie.groupby(columna_region, sort=False)
    for col, nuevo, semanal in DELTAS:
        serie[nuevo] = grupos[col].diff(1)
        serie[semanal] = grupos[col].diff(VENTANA_DIAS) / VENTANA_DIAS
    return serie


def calcular_tasas(serie: pd.DataFrame, poblacion: pd.DataFrame, columna_region: str,
                   anio=None, ventana: str = "calendario") -> pd.DataFrame:
    """Deltas diarios y semanales, y tasas por 100.000 habitantes.

    Los deltas se calculan sobre la serie completa y despues se cruza con la
    poblacion por (region, anio de la fecha), o por (region, ``anio``) si se
    fija un anio. Las filas sin poblacion se descartan sin error.

    Todos los campos de conteo se reescalan con el mismo factor
    100000 / poblacion, asi que la tasa de un delta es el delta de la tasa.
    Un delta sin ventana suficiente queda NaN y sigue NaN en su tasa: el
    delta semanal (x[t] - x[t-7]) / 7 necesita 7 observaciones previas, asi
    que las primeras 7 filas de cada region lo tienen indefinido y la octava
    es la primera con valor. Con ventana "calendario" un hueco de fechas
    tambien deja NaN los deltas que caen sobre el.
    """
    if ventana not in VENTANAS:
        raise ValueError(f"ventana debe ser una de {VENTANAS}, no {ventana!r}")
    claves = [columna_region, "date"]
    if serie.duplicated(subset=claves).any():
        raise ValueError(f"la serie tiene claves ({columna_region}, date) repetidas; agregar antes")
    if poblacion.duplicated(subset=[columna_region, "year"]).any():
        raise ValueError(f"la poblacion tiene claves ({columna_region}, year) repetidas; usar sumar_poblacion")

    tasas = serie.sort_values(claves).reset_index(drop=True)
    if ventana == "calendario":
        tasas = _deltas_calendario(tasas, columna_region)
    else:
        tasas = _deltas_posicion(tasas, columna_region)

    tasas["year"] = anio if anio is not None else tasas["date"].dt.year
    antes = len(tasas)
    tasas = tasas.merge(
        poblacion[[columna_region, "year", "population"]],
        on=[columna_region, "year"], how="inner"
    )
    if len(tasas) < antes:
        get_dagster_logger().debug(
            f"calcular_tasas: {antes - len(tasas)} filas sin poblacion para ({columna_region}, year)"
        )

    factor = POR_100K / tasas["population"].astype("float64")
    for campo in CAMPOS_CONTEO:
        tasas[f"{campo}_per_100k"] = tasas[campo] * factor
    return tasas.sort_values(claves).reset_index(drop=True)


def instantanea(tabla: pd.DataFrame, fecha=None) -> pd.DataFrame:
    fecha = tabla["date"].max() if fecha is None else pd.Timestamp(fecha)
    return tabla[tabla["date"] == fecha].reset_index(drop=True)


def top_n(tabla: pd.DataFrame, columna: str, n: int = TOP_N, descendente: bool = True) -> pd.DataFrame:
    # orden estable: los empates conservan el orden de entrada
    ordenada = tabla.sort_values(columna, ascending=not descendente, kind="stable")
    return ordenada.head(n).reset_index(drop=True)


def comparar_regiones(tabla: pd.DataFrame, regiones, columna_region: str) -> pd.DataFrame:
    """Filas de las regiones pedidas, indexadas por (region, date), en el orden pedido."""
    regiones = list(regiones)
    presentes = set(tabla[columna_region])
    faltantes = [r for r in regiones if r not in presentes]
    if faltantes:
        get_dagster_logger().warning(f"comparar_regiones: sin datos para {faltantes}")

    seleccion = tabla[tabla[columna_region].isin(regiones)].copy()
    seleccion["_orden"] = seleccion[columna_region].map({r: i for i, r in enumerate(regiones)})
    seleccion = seleccion.sort_values(["_orden", "date"]).drop(columns="_orden")
    return seleccion.set_index([columna_region, "date"])
