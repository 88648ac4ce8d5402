# assets.py
from datetime import datetime
from typing import List

import pandas as pd
from dagster import (
    asset, AssetCheckResult, asset_check, AssetExecutionContext,
    AssetCheckExecutionContext, AssetCheckSeverity, MetadataValue
)

from .constantes import (
    ANIO_POBLACION_GLOBAL, ANIOS_CONDADOS, COLUMNAS_CONDADOS, ESTADOS_COMPARACION,
    FECHA_FIN, FECHA_INICIO, NOMBRES_PAISES, TERRITORIOS_EXCLUIDOS, TOP_N
)
from .fuentes import (
    FuentesCovid, leer_casos_condados, leer_poblacion_condados,
    leer_poblacion_global, leer_serie_global
)
from .reporte import (
    DestinoReporte, cargar_geojson, grafico_barras_top, grafico_comparacion,
    grafico_doble_eje, mapa_coropletico
)
from .transformaciones import (
    agregar, armar_serie_global, calcular_tasas, comparar_regiones, homologar_paises,
    instantanea, normalizar, sumar_poblacion, top_n
)

NOMBRE_NACION = "United States"
METRICAS_RANKING = ["cases_per_100k", "deaths_per_100k"]


def _rango_fechas(df: pd.DataFrame) -> str:
    if df.empty:
        return "sin datos"
    return f"{df['date'].min():%Y-%m-%d} a {df['date'].max():%Y-%m-%d}"


def _rankings(tasas: pd.DataFrame, columna_region: str) -> pd.DataFrame:
    ultimo_dia = instantanea(tasas)
    partes = []
    for metrica in METRICAS_RANKING:
        top = top_n(ultimo_dia[[columna_region, "date", metrica]], metrica, TOP_N)
        top = top.rename(columns={metrica: "valor"})
        top.insert(0, "metrica", metrica)
        top.insert(1, "posicion", range(1, len(top) + 1))
        partes.append(top)
    return pd.concat(partes, ignore_index=True)


# ------------------ FUENTES ------------------

@asset
def casos_condados_crudos(context: AssetExecutionContext, fuentes: FuentesCovid) -> List[pd.DataFrame]:
    fragmentos = []
    for origen in fuentes.casos_condados:
        df = leer_casos_condados(origen, timeout=fuentes.timeout)
        context.log.info(f"Fragmento {origen}: {len(df)} filas, {_rango_fechas(df)}")
        fragmentos.append(df)
    return fragmentos


@asset
def poblacion_condados(context: AssetExecutionContext, fuentes: FuentesCovid) -> pd.DataFrame:
    df = leer_poblacion_condados(fuentes.poblacion_condados, ANIOS_CONDADOS, timeout=fuentes.timeout)
    context.log.info(f"Poblacion de {df['fips'].nunique()} condados para {ANIOS_CONDADOS}")
    return df


@asset
def casos_globales_crudos(context: AssetExecutionContext, fuentes: FuentesCovid) -> pd.DataFrame:
    df = leer_serie_global(fuentes.casos_globales, timeout=fuentes.timeout)
    context.log.info(f"Casos globales: {len(df)} filas, {len(df.columns) - 4} fechas")
    return df


@asset
def muertes_globales_crudas(context: AssetExecutionContext, fuentes: FuentesCovid) -> pd.DataFrame:
    df = leer_serie_global(fuentes.muertes_globales, timeout=fuentes.timeout)
    context.log.info(f"Muertes globales: {len(df)} filas, {len(df.columns) - 4} fechas")
    return df


@asset
def poblacion_global(context: AssetExecutionContext, fuentes: FuentesCovid) -> pd.DataFrame:
    df = leer_poblacion_global(
        fuentes.poblacion_global, ANIO_POBLACION_GLOBAL,
        filas_omitidas=fuentes.filas_omitidas_poblacion_global, timeout=fuentes.timeout,
        miembro=fuentes.miembro_poblacion_global
    )
    context.log.info(f"Poblacion {ANIO_POBLACION_GLOBAL} de {len(df)} paises")
    return df


# ------------------ SERIES NORMALIZADAS ------------------

@asset
def serie_condados(context: AssetExecutionContext, casos_condados_crudos: List[pd.DataFrame]) -> pd.DataFrame:
    context.log.info(f"Normalizando {len(casos_condados_crudos)} fragmentos entre {FECHA_INICIO:%Y-%m-%d} y {FECHA_FIN:%Y-%m-%d}")
    df = normalizar(
        casos_condados_crudos, TERRITORIOS_EXCLUIDOS, FECHA_INICIO, FECHA_FIN,
        columna_region="state", claves=["state", "county", "fips"]
    )
    context.add_output_metadata({
        "registros": MetadataValue.int(len(df)),
        "estados": MetadataValue.int(int(df["state"].nunique())),
        "rango_fechas": MetadataValue.text(_rango_fechas(df)),
    })
    return df


@asset
def serie_global(context: AssetExecutionContext, casos_globales_crudos: pd.DataFrame,
                 muertes_globales_crudas: pd.DataFrame) -> pd.DataFrame:
    largo = homologar_paises(armar_serie_global(casos_globales_crudos, muertes_globales_crudas), NOMBRES_PAISES)
    largo = normalizar(
        largo, set(), FECHA_INICIO, FECHA_FIN,
        columna_region="country", claves=["country", "subregion"]
    )
    df = agregar(largo, ["country", "date"])
    context.add_output_metadata({
        "registros": MetadataValue.int(len(df)),
        "paises": MetadataValue.int(int(df["country"].nunique())),
        "rango_fechas": MetadataValue.text(_rango_fechas(df)),
    })
    return df


# ------------------ TASAS ------------------

@asset
def tasas_nacionales(context: AssetExecutionContext, serie_condados: pd.DataFrame,
                     poblacion_condados: pd.DataFrame) -> pd.DataFrame:
    nacion = agregar(serie_condados, ["date"])
    nacion.insert(0, "region", NOMBRE_NACION)
    estados = poblacion_condados[~poblacion_condados["state"].isin(TERRITORIOS_EXCLUIDOS)]
    poblacion = sumar_poblacion(estados, ["year"])
    poblacion.insert(0, "region", NOMBRE_NACION)
    df = calcular_tasas(nacion, poblacion, "region")
    context.add_output_metadata({
        "registros": MetadataValue.int(len(df)),
        "rango_fechas": MetadataValue.text(_rango_fechas(df)),
    })
    return df


@asset
def tasas_estatales(context: AssetExecutionContext, serie_condados: pd.DataFrame,
                    poblacion_condados: pd.DataFrame) -> pd.DataFrame:
    estados = agregar(serie_condados, ["state", "date"])
    df = calcular_tasas(estados, sumar_poblacion(poblacion_condados, ["state", "year"]), "state")
    sin_poblacion = sorted(set(estados["state"]) - set(df["state"]))
    if sin_poblacion:
        context.log.warning(f"Estados sin poblacion, fuera de las tasas: {sin_poblacion}")
    context.add_output_metadata({
        "registros": MetadataValue.int(len(df)),
        "estados": MetadataValue.int(int(df["state"].nunique())),
        "descartados_sin_poblacion": MetadataValue.int(len(estados) - len(df)),
    })
    return df


@asset
def tasas_condados(context: AssetExecutionContext, serie_condados: pd.DataFrame,
                   poblacion_condados: pd.DataFrame) -> pd.DataFrame:
    # filas sin FIPS (p. ej. "Unknown", "New York City") no llegan al mapa
    condados = agregar(serie_condados, ["fips", "date"])
    df = calcular_tasas(condados, sumar_poblacion(poblacion_condados, ["fips", "year"]), "fips")
    nombres = poblacion_condados[["fips", "state", "county"]].drop_duplicates("fips")
    df = df.merge(nombres, on="fips", how="left")
    context.add_output_metadata({
        "registros": MetadataValue.int(len(df)),
        "condados": MetadataValue.int(int(df["fips"].nunique())),
        "descartados_sin_poblacion": MetadataValue.int(len(condados) - len(df)),
    })
    return df


@asset
def tasas_globales(context: AssetExecutionContext, serie_global: pd.DataFrame,
                   poblacion_global: pd.DataFrame) -> pd.DataFrame:
    df = calcular_tasas(serie_global, poblacion_global, "country", anio=ANIO_POBLACION_GLOBAL)
    sin_poblacion = sorted(set(serie_global["country"]) - set(df["country"]))
    if sin_poblacion:
        context.log.warning(f"{len(sin_poblacion)} paises sin poblacion {ANIO_POBLACION_GLOBAL}: {sin_poblacion[:10]}")
    context.add_output_metadata({
        "registros": MetadataValue.int(len(df)),
        "paises": MetadataValue.int(int(df["country"].nunique())),
    })
    return df


# ------------------ RANKINGS Y COMPARACIONES ------------------

@asset
def top_estados(context: AssetExecutionContext, tasas_estatales: pd.DataFrame) -> pd.DataFrame:
    df = _rankings(tasas_estatales, "state")
    context.log.info(f"Top {TOP_N} estados por {METRICAS_RANKING}")
    return df


@asset
def top_paises(context: AssetExecutionContext, tasas_globales: pd.DataFrame) -> pd.DataFrame:
    df = _rankings(tasas_globales, "country")
    context.log.info(f"Top {TOP_N} paises por {METRICAS_RANKING}")
    return df


@asset
def comparacion_estados(context: AssetExecutionContext, tasas_estatales: pd.DataFrame) -> pd.DataFrame:
    context.log.info(f"Comparando estados: {ESTADOS_COMPARACION}")
    df = comparar_regiones(tasas_estatales, ESTADOS_COMPARACION, "state")
    context.add_output_metadata({
        "registros": MetadataValue.int(len(df)),
        "estados": MetadataValue.json(ESTADOS_COMPARACION),
    })
    return df


# ------------------ REPORTE ------------------

@asset
def graficos_reporte(context: AssetExecutionContext, destino: DestinoReporte,
                     tasas_nacionales: pd.DataFrame, comparacion_estados: pd.DataFrame,
                     top_estados: pd.DataFrame, top_paises: pd.DataFrame,
                     tasas_condados: pd.DataFrame) -> List[str]:
    archivos = [
        grafico_doble_eje(
            tasas_nacionales, "cases_7d", "deaths_7d",
            "Estados Unidos: promedio de 7 dias de casos y muertes nuevas",
            destino.ruta("nacional_casos_muertes.png")
        ),
        grafico_comparacion(
            comparacion_estados, "cases_7d_per_100k",
            "Casos nuevos (promedio 7 dias) por 100k habitantes",
            destino.ruta("comparacion_estados.png")
        ),
        grafico_barras_top(top_estados, "state", f"Top {TOP_N} estados", destino.ruta("top_estados.png")),
        grafico_barras_top(top_paises, "country", f"Top {TOP_N} paises", destino.ruta("top_paises.png")),
    ]
    geojson = cargar_geojson(destino.geojson_condados, timeout=destino.timeout)
    archivos.append(mapa_coropletico(
        instantanea(tasas_condados), geojson, "cases_per_100k",
        "Casos acumulados por 100k habitantes", destino.ruta("mapa_condados.html")
    ))
    context.log.info(f"Graficos generados: {archivos}")
    context.add_output_metadata({"archivos": MetadataValue.json(archivos)})
    return archivos


@asset
def reporte_excel_covid(context: AssetExecutionContext, destino: DestinoReporte,
                        tasas_nacionales: pd.DataFrame, tasas_estatales: pd.DataFrame,
                        tasas_condados: pd.DataFrame, tasas_globales: pd.DataFrame,
                        top_estados: pd.DataFrame, top_paises: pd.DataFrame,
                        comparacion_estados: pd.DataFrame) -> str:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    archivo = str(destino.ruta(f"reporte_covid_{timestamp}.xlsx"))
    # la serie completa de condados excede el limite de filas de Excel
    with pd.ExcelWriter(archivo, engine='openpyxl') as writer:
        tasas_nacionales.to_excel(writer, sheet_name='Nacional', index=False)
        tasas_estatales.to_excel(writer, sheet_name='Estados', index=False)
        comparacion_estados.to_excel(writer, sheet_name='Comparacion_Estados')
        top_estados.to_excel(writer, sheet_name='Top_Estados', index=False)
        instantanea(tasas_condados).to_excel(writer, sheet_name='Condados_Ultimo_Dia', index=False)
        instantanea(tasas_globales).to_excel(writer, sheet_name='Paises_Ultimo_Dia', index=False)
        top_paises.to_excel(writer, sheet_name='Top_Paises', index=False)
    context.log.info(f"Reporte exportado: {archivo}")
    return archivo


# ------------------ CHECKS ------------------

@asset_check(asset=serie_condados, name="check_columnas_clave")
def check_columnas_clave(context: AssetCheckExecutionContext, serie_condados: pd.DataFrame) -> AssetCheckResult:
    faltantes = [c for c in COLUMNAS_CONDADOS if c not in serie_condados.columns]
    passed = len(faltantes) == 0
    return AssetCheckResult(
        passed=passed,
        description="Todas columnas presentes" if passed else f"Faltan columnas: {faltantes}",
        severity=AssetCheckSeverity.ERROR,
        metadata={"columnas_faltantes": MetadataValue.json(faltantes)}
    )


@asset_check(asset=serie_condados, name="check_ventana_fechas")
def check_ventana_fechas(context: AssetCheckExecutionContext, serie_condados: pd.DataFrame) -> AssetCheckResult:
    fuera = ((serie_condados['date'] < FECHA_INICIO) | (serie_condados['date'] > FECHA_FIN)).sum()
    passed = bool(fuera == 0)
    return AssetCheckResult(
        passed=passed,
        description=f"Fechas dentro de la ventana: {_rango_fechas(serie_condados)}" if passed
        else f"ERROR: {fuera} filas fuera de la ventana",
        severity=AssetCheckSeverity.ERROR,
        metadata={"filas_fuera": MetadataValue.int(int(fuera))}
    )


@asset_check(asset=serie_condados, name="check_regiones_excluidas")
def check_regiones_excluidas(context: AssetCheckExecutionContext, serie_condados: pd.DataFrame) -> AssetCheckResult:
    presentes = sorted(set(serie_condados['state']) & TERRITORIOS_EXCLUIDOS)
    passed = len(presentes) == 0
    return AssetCheckResult(
        passed=passed,
        description="Sin territorios excluidos" if passed else f"Territorios presentes: {presentes}",
        severity=AssetCheckSeverity.ERROR,
        metadata={"territorios": MetadataValue.json(presentes)}
    )


@asset_check(asset=serie_condados, name="check_conteos_no_negativos")
def check_conteos_no_negativos(context: AssetCheckExecutionContext, serie_condados: pd.DataFrame) -> AssetCheckResult:
    negativos = int((serie_condados[['cases', 'deaths']] < 0).any(axis=1).sum())
    passed = negativos == 0
    # el pipeline no corrige conteos; solo se avisa
    return AssetCheckResult(
        passed=passed,
        description="Conteos no negativos" if passed else f"{negativos} filas con conteos negativos",
        severity=AssetCheckSeverity.WARN,
        metadata={"filas_afectadas": MetadataValue.int(negativos)}
    )


@asset_check(asset=tasas_estatales, name="check_unicidad_region_fecha")
def check_unicidad_region_fecha(context: AssetCheckExecutionContext, tasas_estatales: pd.DataFrame) -> AssetCheckResult:
    dup = int(tasas_estatales.duplicated(subset=['state', 'date']).sum())
    passed = dup == 0
    return AssetCheckResult(
        passed=passed,
        description="Sin duplicados" if passed else f"{dup} duplicados encontrados",
        severity=AssetCheckSeverity.ERROR,
        metadata={"duplicados": MetadataValue.int(dup)}
    )


@asset_check(asset=poblacion_condados, name="check_poblacion_positiva")
def check_poblacion_positiva(context: AssetCheckExecutionContext, poblacion_condados: pd.DataFrame) -> AssetCheckResult:
    no_positivos = int((poblacion_condados['population'] <= 0).sum())
    faltantes = int(poblacion_condados['population'].isna().sum())
    passed = no_positivos == 0 and faltantes == 0
    return AssetCheckResult(
        passed=passed,
        description="Population positiva" if passed else f"{no_positivos} valores no positivos, {faltantes} faltantes",
        severity=AssetCheckSeverity.ERROR,
        metadata={
            "filas_no_positivas": MetadataValue.int(no_positivos),
            "filas_faltantes": MetadataValue.int(faltantes),
        }
    )
