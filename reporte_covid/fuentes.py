# fuentes.py
import io
import zipfile
from typing import List, Optional

import pandas as pd
import requests
from dagster import ConfigurableResource, get_dagster_logger

from .constantes import (
    ANIOS_CONDADOS, CENSO_URL, COLUMNAS_CONDADOS, FILAS_ENCABEZADO_BANCO_MUNDIAL,
    JHU_CASOS_URL, JHU_MUERTES_URL, MIEMBRO_POBLACION_GLOBAL, NYT_URL, POBLACION_GLOBAL_URL
)
from .errores import FuenteNoDisponible

TIMEOUT_SEGUNDOS = 60
COLUMNAS_JHU = {
    "Province/State": "subregion",
    "Country/Region": "country",
    "Lat": "lat",
    "Long": "long",
}


class FuentesCovid(ConfigurableResource):
    """Ubicacion (URL o ruta local) de cada fuente del reporte."""

    casos_condados: List[str] = [NYT_URL.format(anio=anio) for anio in ANIOS_CONDADOS]
    poblacion_condados: str = CENSO_URL
    casos_globales: str = JHU_CASOS_URL
    muertes_globales: str = JHU_MUERTES_URL
    poblacion_global: str = POBLACION_GLOBAL_URL
    miembro_poblacion_global: str = MIEMBRO_POBLACION_GLOBAL
    filas_omitidas_poblacion_global: int = FILAS_ENCABEZADO_BANCO_MUNDIAL
    timeout: int = TIMEOUT_SEGUNDOS


def _extraer_miembro(datos, miembro: str):
    # un CSV plano pasa tal cual; de un zip se toma el primer miembro con ese prefijo
    if not zipfile.is_zipfile(datos):
        if hasattr(datos, "seek"):
            datos.seek(0)
        return datos
    with zipfile.ZipFile(datos) as archivo:
        nombres = sorted(n for n in archivo.namelist() if n.startswith(miembro))
        if not nombres:
            raise ValueError(f"el zip no contiene {miembro}*: {archivo.namelist()}")
        return io.BytesIO(archivo.read(nombres[0]))


def descargar_csv(origen, timeout: int = TIMEOUT_SEGUNDOS, miembro: Optional[str] = None,
                  **kwargs) -> pd.DataFrame:
    """Lee un CSV desde URL o ruta local.

    Con ``miembro``, si el origen es un zip se lee el CSV cuyo nombre empieza
    con ese prefijo.
    """
    origen = str(origen)
    try:
        if origen.startswith(("http://", "https://")):
            respuesta = requests.get(origen, timeout=timeout)
            respuesta.raise_for_status()
            datos = io.BytesIO(respuesta.content)
        else:
            datos = origen
        if miembro is not None:
            datos = _extraer_miembro(datos, miembro)
        df = pd.read_csv(datos, **kwargs)
    except (requests.RequestException, OSError, ValueError, zipfile.BadZipFile) as e:
        raise FuenteNoDisponible(origen, e) from e
    get_dagster_logger().debug(f"{origen}: {len(df)} filas, {len(df.columns)} columnas")
    return df


def _validar_columnas(df: pd.DataFrame, columnas, origen) -> None:
    faltantes = [c for c in columnas if c not in df.columns]
    if faltantes:
        raise FuenteNoDisponible(str(origen), f"faltan columnas: {faltantes}")


def leer_casos_condados(origen, timeout: int = TIMEOUT_SEGUNDOS) -> pd.DataFrame:
    df = descargar_csv(origen, timeout=timeout, dtype={"fips": str})
    _validar_columnas(df, COLUMNAS_CONDADOS, origen)
    df = df[COLUMNAS_CONDADOS].copy()
    try:
        df["date"] = pd.to_datetime(df["date"], format="%Y-%m-%d")
    except ValueError as e:
        raise FuenteNoDisponible(str(origen), e) from e
    df["fips"] = df["fips"].str.strip().str.zfill(5)
    for col in ["cases", "deaths"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def leer_poblacion_condados(origen, anios=ANIOS_CONDADOS, timeout: int = TIMEOUT_SEGUNDOS) -> pd.DataFrame:
    """Estimaciones del censo por condado en formato largo (state, county, fips, year, population)."""
    columnas_pob = [f"POPESTIMATE{anio}" for anio in anios]
    df = descargar_csv(
        origen, timeout=timeout, encoding="latin-1",
        dtype={"SUMLEV": str, "STATE": str, "COUNTY": str}
    )
    _validar_columnas(df, ["SUMLEV", "STATE", "COUNTY", "STNAME", "CTYNAME"] + columnas_pob, origen)

    # SUMLEV 040 son totales estatales; solo se usan filas de condado
    condados = df[df["SUMLEV"].str.zfill(3) == "050"].copy()
    condados["fips"] = condados["STATE"].str.zfill(2) + condados["COUNTY"].str.zfill(3)
    largo = condados.melt(
        id_vars=["STNAME", "CTYNAME", "fips"], value_vars=columnas_pob,
        var_name="year", value_name="population"
    )
    largo["year"] = largo["year"].str.replace("POPESTIMATE", "", regex=False).astype(int)
    largo["population"] = pd.to_numeric(largo["population"], errors="coerce")
    largo = largo.rename(columns={"STNAME": "state", "CTYNAME": "county"})
    return largo[["state", "county", "fips", "year", "population"]].sort_values(
        ["fips", "year"]
    ).reset_index(drop=True)


def leer_serie_global(origen, timeout: int = TIMEOUT_SEGUNDOS) -> pd.DataFrame:
    df = descargar_csv(origen, timeout=timeout)
    _validar_columnas(df, list(COLUMNAS_JHU), origen)
    df = df.rename(columns=COLUMNAS_JHU)
    df["subregion"] = df["subregion"].fillna("")
    return df


def leer_poblacion_global(origen, anio: int, filas_omitidas: int = FILAS_ENCABEZADO_BANCO_MUNDIAL,
                          timeout: int = TIMEOUT_SEGUNDOS,
                          miembro: str = MIEMBRO_POBLACION_GLOBAL) -> pd.DataFrame:
    """Poblacion por pais del Banco Mundial, desde el zip de descarga o un CSV ya extraido."""
    df = descargar_csv(origen, timeout=timeout, miembro=miembro, skiprows=filas_omitidas)
    columna_anio = str(anio)
    _validar_columnas(df, ["Country Name", columna_anio], origen)
    poblacion = pd.DataFrame({
        "country": df["Country Name"],
        "year": anio,
        "population": pd.to_numeric(df[columna_anio], errors="coerce"),
    })
    return poblacion.dropna(subset=["population"]).reset_index(drop=True)
