from rdsync.models.enums import AppRole

PERMS: dict[str, set[AppRole]] = {
    "sinistros:read": {AppRole.admin_vizio, AppRole.admin_empresa, AppRole.rh_gestor, AppRole.visualizador},
    "sinistros:sync": {AppRole.admin_vizio, AppRole.admin_empresa, AppRole.rh_gestor},
    "sinistros:update_status": {AppRole.admin_vizio},

    "rd:pipeline_config": {AppRole.admin_vizio},
    "rd:organizations": {AppRole.admin_vizio},
    "rd:link_empresa": {AppRole.admin_vizio},

    "demandas:sync": {AppRole.admin_vizio, AppRole.admin_empresa, AppRole.rh_gestor},
}
