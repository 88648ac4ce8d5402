from dagster import Definitions
from .assets import (
    casos_condados_crudos,
    poblacion_condados,
    casos_globales_crudos,
    muertes_globales_crudas,
    poblacion_global,
    serie_condados,
    serie_global,
    tasas_nacionales,
    tasas_estatales,
    tasas_condados,
    tasas_globales,
    top_estados,
    top_paises,
    comparacion_estados,
    graficos_reporte,
    reporte_excel_covid,
    check_columnas_clave,
    check_ventana_fechas,
    check_regiones_excluidas,
    check_conteos_no_negativos,
    check_unicidad_region_fecha,
    check_poblacion_positiva
)
from .fuentes import FuentesCovid
from .reporte import DestinoReporte

defs = Definitions(
    assets=[
        casos_condados_crudos,
        poblacion_condados,
        casos_globales_crudos,
        muertes_globales_crudas,
        poblacion_global,
        serie_condados,
        serie_global,
        tasas_nacionales,
        tasas_estatales,
        tasas_condados,
        tasas_globales,
        top_estados,
        top_paises,
        comparacion_estados,
        graficos_reporte,
        reporte_excel_covid
    ],
    asset_checks=[
        check_columnas_clave,
        check_ventana_fechas,
        check_regiones_excluidas,
        check_conteos_no_negativos,
        check_unicidad_region_fecha,
        check_poblacion_positiva
    ],
    resources={
        "fuentes": FuentesCovid(),
        "destino": DestinoReporte(),
    }
)
