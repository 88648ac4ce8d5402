# constantes.py
import pandas as pd

NYT_URL = "https://raw.githubusercontent.com/nytimes/covid-19-data/master/us-counties-{anio}.csv"
ANIOS_CONDADOS = [2020, 2021, 2022]
CENSO_URL = (
    "https://www2.census.gov/programs-surveys/popest/datasets/2020-2022/"
    "counties/totals/co-est2022-alldata.csv"
)
JHU_URL = (
    "https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/"
    "csse_covid_19_data/csse_covid_19_time_series/time_series_covid19_{serie}_global.csv"
)
JHU_CASOS_URL = JHU_URL.format(serie="confirmed")
JHU_MUERTES_URL = JHU_URL.format(serie="deaths")
# El Banco Mundial entrega un zip; el CSV de datos es el miembro API_SP.POP.TOTL_*.csv
POBLACION_GLOBAL_URL = "https://api.worldbank.org/v2/en/indicator/SP.POP.TOTL?downloadformat=csv"
MIEMBRO_POBLACION_GLOBAL = "API_SP.POP.TOTL"
FILAS_ENCABEZADO_BANCO_MUNDIAL = 4
GEOJSON_CONDADOS_URL = "https://raw.githubusercontent.com/plotly/datasets/master/geojson-counties-fips.json"

FECHA_INICIO = pd.Timestamp("2020-03-01")
FECHA_FIN = pd.Timestamp("2022-12-31")
ANIO_POBLACION_GLOBAL = 2020

# Territorios y distrito fuera de los 50 estados
TERRITORIOS_EXCLUIDOS = {
    "American Samoa",
    "District of Columbia",
    "Guam",
    "Northern Mariana Islands",
    "Puerto Rico",
    "Virgin Islands",
}

ESTADOS_COMPARACION = ["New York", "California", "Texas", "Florida"]
TOP_N = 10
POR_100K = 100000

# Nombres JHU -> nombres del Banco Mundial
NOMBRES_PAISES = {
    "US": "United States",
    "Korea, South": "Korea, Rep.",
    "Korea, North": "Korea, Dem. People's Rep.",
    "Russia": "Russian Federation",
    "Iran": "Iran, Islamic Rep.",
    "Egypt": "Egypt, Arab Rep.",
    "Venezuela": "Venezuela, RB",
    "Syria": "Syrian Arab Republic",
    "Slovakia": "Slovak Republic",
    "Kyrgyzstan": "Kyrgyz Republic",
    "Laos": "Lao PDR",
    "Yemen": "Yemen, Rep.",
    "Gambia": "Gambia, The",
    "Bahamas": "Bahamas, The",
    "Brunei": "Brunei Darussalam",
    "Congo (Kinshasa)": "Congo, Dem. Rep.",
    "Congo (Brazzaville)": "Congo, Rep.",
    "Micronesia": "Micronesia, Fed. Sts.",
    "Saint Kitts and Nevis": "St. Kitts and Nevis",
    "Saint Lucia": "St. Lucia",
    "Saint Vincent and the Grenadines": "St. Vincent and the Grenadines",
    "Turkey": "Turkiye",
    "Burma": "Myanmar",
}

COLUMNAS_CONDADOS = ["date", "county", "state", "fips", "cases", "deaths"]
COLUMNAS_CONTEO = ["cases", "deaths"]
