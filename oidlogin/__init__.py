# Make sure to import all modules which define trac components
from oidlogin import (
    authorization,
    identifier_store,
    tracstore,
    userlogin,
    web_ui,
    ) ; 'SIDE-EFFECTS'
