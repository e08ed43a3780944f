from calcas.utils.ast_utils import (ASTNode
                                    , copy_ast
                                    , map_children
                                    , substitute_params
                                    , ast_uses_func
                                    , ast_depth
                                    , ast_to_string
                                    , format_number)
from calcas.utils.print_utils import format_result, _pformat
