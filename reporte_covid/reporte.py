# reporte.py
import json
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
import plotly.express as px
import requests
from dagster import ConfigurableResource

from .constantes import GEOJSON_CONDADOS_URL
from .errores import FuenteNoDisponible
from .fuentes import TIMEOUT_SEGUNDOS

COLOR_CASOS = "#1d4ed8"
COLOR_MUERTES = "#ef4444"
PALETA = ["#1d4ed8", "#ef4444", "#16a34a", "#f59e0b", "#7c3aed", "#0891b2"]

plt.rcParams.update({
    'figure.figsize': (12, 6),
    'axes.titlesize': 16,
    'axes.titleweight': 'bold',
    'axes.labelsize': 12,
    'legend.frameon': False,
    'savefig.dpi': 150,
    'savefig.bbox': 'tight',
})


class DestinoReporte(ConfigurableResource):
    """Donde se escribe el reporte y de donde sale la geometria de condados."""

    directorio: str = "reporte"
    geojson_condados: str = GEOJSON_CONDADOS_URL
    timeout: int = TIMEOUT_SEGUNDOS

    def ruta(self, nombre: str) -> Path:
        directorio = Path(self.directorio)
        directorio.mkdir(parents=True, exist_ok=True)
        return directorio / nombre


def cargar_geojson(origen: str, timeout: int = TIMEOUT_SEGUNDOS) -> dict:
    try:
        if origen.startswith(("http://", "https://")):
            respuesta = requests.get(origen, timeout=timeout)
            respuesta.raise_for_status()
            return respuesta.json()
        with open(origen, encoding="utf-8") as f:
            return json.load(f)
    except (requests.RequestException, OSError, ValueError) as e:
        raise FuenteNoDisponible(origen, e) from e


def grafico_doble_eje(tabla: pd.DataFrame, columna_casos: str, columna_muertes: str,
                      titulo: str, ruta) -> str:
    """Casos en el eje Y izquierdo y muertes en el derecho, sobre la misma fecha."""
    fig, eje_casos = plt.subplots()
    eje_casos.plot(tabla["date"], tabla[columna_casos], color=COLOR_CASOS, label=columna_casos)
    eje_casos.set_xlabel("Fecha")
    eje_casos.set_ylabel(columna_casos, color=COLOR_CASOS)

    eje_muertes = eje_casos.twinx()
    eje_muertes.plot(tabla["date"], tabla[columna_muertes], color=COLOR_MUERTES, label=columna_muertes)
    eje_muertes.set_ylabel(columna_muertes, color=COLOR_MUERTES)
    eje_muertes.grid(False)

    eje_casos.set_title(titulo)
    fig.autofmt_xdate()
    fig.savefig(ruta)
    plt.close(fig)
    return str(ruta)


def grafico_comparacion(comparacion: pd.DataFrame, columna: str, titulo: str, ruta) -> str:
    """Una linea por region; ``comparacion`` viene indexada por (region, date)."""
    fig, eje = plt.subplots()
    for i, (region, datos) in enumerate(comparacion.groupby(level=0, sort=False)):
        fechas = datos.index.get_level_values("date")
        eje.plot(fechas, datos[columna], color=PALETA[i % len(PALETA)], label=region)
    eje.set_title(titulo)
    eje.set_xlabel("Fecha")
    eje.set_ylabel(columna)
    eje.legend()
    fig.autofmt_xdate()
    fig.savefig(ruta)
    plt.close(fig)
    return str(ruta)


def grafico_barras_top(ranking: pd.DataFrame, columna_region: str, titulo: str, ruta) -> str:
    """Barras lado a lado, una por metrica del ranking."""
    metricas = list(dict.fromkeys(ranking["metrica"]))
    fig, ejes = plt.subplots(1, len(metricas), figsize=(7 * len(metricas), 6), squeeze=False)
    for eje, metrica, color in zip(ejes[0], metricas, [COLOR_CASOS, COLOR_MUERTES]):
        top = ranking[ranking["metrica"] == metrica]
        eje.barh(top[columna_region], top["valor"], color=color)
        eje.invert_yaxis()
        eje.set_title(metrica)
    fig.suptitle(titulo)
    fig.savefig(ruta)
    plt.close(fig)
    return str(ruta)


def mapa_coropletico(tabla: pd.DataFrame, geojson: dict, columna_valor: str, titulo: str, ruta) -> str:
    fig = px.choropleth(
        tabla,
        geojson=geojson,
        locations="fips",
        color=columna_valor,
        color_continuous_scale="Reds",
        scope="usa",
        hover_name="county" if "county" in tabla.columns else None,
        hover_data={"state": True} if "state" in tabla.columns else None,
        labels={columna_valor: columna_valor.replace("_", " ")},
    )
    fig.update_layout(title=titulo, margin=dict(l=0, r=0, t=40, b=0))
    fig.write_html(str(ruta), include_plotlyjs="cdn")
    return str(ruta)
